"""Transaction signing for Lighter `sendTx` payloads.

The signer produces the `tx_info` JSON string: the transaction fields plus a
`sig` over a colon-joined message of those fields.
"""

from __future__ import annotations

import base64
import json
from typing import Any, Protocol

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.serialization import load_pem_private_key

CREATE_ORDER_FIELDS = (
    "market_index",
    "client_order_index",
    "base_amount",
    "price",
    "is_ask",
    "order_type",
    "time_in_force",
    "reduce_only",
    "trigger_price",
    "order_expiry",
    "nonce",
)
CANCEL_ORDER_FIELDS = ("market_index", "order_index", "nonce")


class TransactionSigner(Protocol):
    def sign_create_order(self, tx: dict[str, Any]) -> str: ...

    def sign_cancel_order(self, tx: dict[str, Any]) -> str: ...


def build_message(tx: dict[str, Any], fields: tuple[str, ...]) -> str:
    """Colon-joined field values in signing order."""
    return ":".join(str(tx[field]) for field in fields)


class PemTransactionSigner:
    """Signs with an EC (ECDSA/SHA-256) or RSA (PSS/SHA-256) PEM private key."""

    def __init__(self, pem: str) -> None:
        pem_bytes = pem.strip().replace("\\n", "\n").encode("utf-8")
        self._private_key = load_pem_private_key(pem_bytes, password=None)
        if not isinstance(self._private_key, (ec.EllipticCurvePrivateKey, rsa.RSAPrivateKey)):
            raise ValueError("LIGHTER_PRIVATE_KEY must be an EC or RSA private key")

    def sign_create_order(self, tx: dict[str, Any]) -> str:
        return self._signed(tx, CREATE_ORDER_FIELDS)

    def sign_cancel_order(self, tx: dict[str, Any]) -> str:
        return self._signed(tx, CANCEL_ORDER_FIELDS)

    def _signed(self, tx: dict[str, Any], fields: tuple[str, ...]) -> str:
        message = build_message(tx, fields).encode("utf-8")
        if isinstance(self._private_key, ec.EllipticCurvePrivateKey):
            signature = self._private_key.sign(message, ec.ECDSA(hashes.SHA256()))
        else:
            signature = self._private_key.sign(
                message,
                padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=padding.PSS.DIGEST_LENGTH),
                hashes.SHA256(),
            )
        return json.dumps({**tx, "sig": base64.b64encode(signature).decode("utf-8")})
