"""Configuration loading and validation.

This module is responsible for:

- Loading `.env` into the process environment (without overriding existing vars).
- Converting environment variables into strongly-typed Pydantic models.
- Validating required fields and providing actionable error messages.

Venue configuration (`load_lighter_config`, `load_shadow_config`) is loaded
separately because only the cross-venue strategy needs credentials.
"""

import os
from decimal import Decimal, InvalidOperation
from typing import Literal, TypeVar

import dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

_T = TypeVar("_T", int, float)

StrategyName = Literal["ss1", "strat1"]

_DEFAULT_INTERVALS: dict[str, float] = {"ss1": 1.0, "strat1": 60.0}
_DEFAULT_SYMBOLS = "BTC,ETH,SONIC"
_DEFAULT_INPUT_VALUES = "10,100"
_DEFAULT_ROUGH_PRICES = "BTC=112735,ETH=4556,SONIC=0.2956,USDC=1"


def _get_required_env(name: str) -> str:
    """Read a required env var or raise a helpful error."""
    value = os.getenv(name, "").strip()
    if not value:
        raise ValueError(f"{name} is required. Please set it in your .env file.")
    if value.startswith("your_") and value.endswith("_here"):
        raise ValueError(f"{name} is required. Please replace the placeholder value in your .env file.")
    return value


def _get_env_bool(name: str, default: bool) -> bool:
    """Read a boolean env var with a default."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    normalized = raw.strip().lower()
    if normalized in {"true", "1", "yes", "y", "on"}:
        return True
    if normalized in {"false", "0", "no", "n", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean (true/false). Got: {raw!r}")


def _get_env_number(name: str, default: _T, cast: type[_T]) -> _T:
    """Read an int/float env var with a default."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a {cast.__name__}. Got: {raw!r}") from exc


def _get_env_list(name: str, default: str) -> list[str]:
    """Read a comma-separated env var; blank items are dropped."""
    raw = os.getenv(name) or default
    return [item.strip() for item in raw.split(",") if item.strip()]


def _get_required_int(name: str) -> int:
    raw = _get_required_env(name)
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a int. Got: {raw!r}") from exc


def _get_env_decimal_map(name: str, default: str) -> dict[str, Decimal]:
    """Read `KEY=number,KEY=number` into a mapping of Decimals."""
    return _parse_decimal_map(name, os.getenv(name) or default)


def _parse_decimal_map(name: str, raw: str) -> dict[str, Decimal]:
    result: dict[str, Decimal] = {}
    for item in (part.strip() for part in raw.split(",")):
        if not item:
            continue
        key, sep, raw_value = item.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"{name} entries must look like SYMBOL=price. Got: {item!r}")
        try:
            result[key.strip().upper()] = Decimal(raw_value.strip())
        except InvalidOperation as exc:
            raise ValueError(f"{name} has a non-numeric price for {key.strip()!r}: {raw_value!r}") from exc
    return result


def _validate_pem(name: str, v: str) -> str:
    if not v.strip().startswith("-----BEGIN") or not v.strip().endswith("-----"):
        raise ValueError(
            f"{name} must be in PEM format starting with '-----BEGIN' and ending with '-----'. "
            "Make sure to include \\n for line breaks in your .env file."
        )
    # .env files usually carry the key on one line with literal \n separators.
    return v.replace("\\n", "\n")


class StrategyConfig(BaseModel):
    """Which strategy runs and how it looks for opportunities."""

    name: StrategyName = Field(default="ss1", description="Strategy to run")
    interval_s: float = Field(default=1.0, description="Seconds between strategy cycles")
    data_dir: str = Field(default="./data", description="Directory for ledger snapshots")
    symbols: list[str] = Field(default_factory=lambda: _DEFAULT_SYMBOLS.split(","))
    input_values: list[Decimal] = Field(
        default_factory=lambda: [Decimal(v) for v in _DEFAULT_INPUT_VALUES.split(",")],
        description="USDC notionals to price per symbol",
    )
    rough_prices: dict[str, Decimal] = Field(
        default_factory=lambda: _parse_decimal_map("STRATEGY_ROUGH_PRICES", _DEFAULT_ROUGH_PRICES),
        description="Approximate USDC price per symbol, used to size sells",
    )
    min_edge_bps: Decimal = Field(default=Decimal("30"), description="Minimum estimated edge to trade")

    @field_validator("interval_s")
    def validate_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("STRATEGY_INTERVAL_S must be > 0.")
        return v

    @field_validator("symbols")
    def validate_symbols(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("STRATEGY_SYMBOLS must name at least one symbol.")
        return [s.upper() for s in v]

    @field_validator("input_values")
    def validate_input_values(cls, v: list[Decimal]) -> list[Decimal]:
        if not v or any(value <= 0 for value in v):
            raise ValueError("STRATEGY_INPUT_VALUES must be positive numbers.")
        return v

    @model_validator(mode="after")
    def validate_rough_prices(self) -> "StrategyConfig":
        if self.name == "strat1":
            missing = [s for s in self.symbols if s not in self.rough_prices]
            if missing:
                raise ValueError(f"STRATEGY_ROUGH_PRICES is missing prices for: {', '.join(missing)}")
        return self

    @property
    def snapshot_path(self) -> str:
        return os.path.join(self.data_dir, f"{self.name}-data.json")


class ExecutionConfig(BaseModel):
    """Bounds for the order execution coordinator."""

    create_attempts: int = Field(default=3, ge=1, description="Attempts to create an order")
    poll_attempts: int = Field(default=3, ge=1, description="Attempts per poll / cancel-recheck phase")
    poll_delay_s: float = Field(default=1.0, ge=0, description="Delay between failed polls (seconds)")


class ServerConfig(BaseModel):
    """Read-only HTTP surface and process-level settings."""

    port: int = Field(default=8080, ge=0, le=65535)
    observability_db_path: str | None = Field(default=None, description="DuckDB file; unset disables recording")
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"LOG_LEVEL must be a logging level name. Got: {v!r}")
        return level


class LighterConfig(BaseModel):
    """Configuration for the Lighter order-book exchange."""

    base_url: str = Field(..., description="Lighter REST base URL")
    private_key: str = Field(..., description="API key private key (PEM)")
    account_index: int = Field(..., ge=0)
    api_key_index: int = Field(default=0, ge=0)

    rate_limit: int = Field(default=10, description="Max requests per second")
    max_attempt: int = Field(default=5, description="Max attempts per request")
    base_delay: float = Field(default=0.5, description="Initial retry delay (seconds)")
    backoff_multiplier: float = Field(default=2.0, description="Exponential backoff multiplier")
    max_delay: float = Field(default=30.0, description="Max total delay before failing (seconds)")
    orderbook_limit: int = Field(default=100, description="Orders fetched per book side")
    price_protection: bool = Field(default=True, description="Ask the exchange to reject orders that would slip too far")

    @field_validator("private_key")
    def validate_private_key(cls, v: str) -> str:
        return _validate_pem("LIGHTER_PRIVATE_KEY", v)


class ShadowConfig(BaseModel):
    """Configuration for the Shadow DEX aggregator and the Sonic chain node."""

    api_url: str = Field(..., description="Quote endpoint of the Shadow routing API")
    rpc_url: str = Field(..., description="JSON-RPC endpoint of a node holding the wallet")
    wallet_address: str = Field(..., description="Sender of swap transactions")
    router_address: str = Field(..., description="Universal router the calldata targets")
    chain_id: int = Field(default=146)
    slippage_tolerance: Decimal = Field(default=Decimal("20"))
    deadline_s: int = Field(default=10800)
    token_addresses: dict[str, str] = Field(default_factory=dict, description="Trading symbol -> ERC-20 address")

    rate_limit: int = Field(default=5, description="Max requests per second")
    max_attempt: int = Field(default=5, description="Max attempts per request")
    base_delay: float = Field(default=0.5, description="Initial retry delay (seconds)")
    backoff_multiplier: float = Field(default=2.0, description="Exponential backoff multiplier")
    max_delay: float = Field(default=30.0, description="Max total delay before failing (seconds)")

    @field_validator("wallet_address", "router_address")
    def validate_address(cls, v: str) -> str:
        if not v.startswith("0x") or len(v) != 42:
            raise ValueError(f"Expected a 0x-prefixed 20-byte address. Got: {v!r}")
        return v

    @field_validator("token_addresses")
    def validate_token_addresses(cls, v: dict[str, str]) -> dict[str, str]:
        for symbol, address in v.items():
            if not address.startswith("0x") or len(address) != 42:
                raise ValueError(f"SHADOW_TOKEN_{symbol} must be a 0x-prefixed 20-byte address. Got: {address!r}")
        return {symbol.upper(): address for symbol, address in v.items()}


class Config(BaseModel):
    """Top-level application configuration."""

    strategy: StrategyConfig = Field(default_factory=StrategyConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


def load_config() -> Config:
    """Load application configuration from environment variables.

    Notes:
    - Calls `dotenv.load_dotenv()` so local `.env` values are visible to the process.
    - Raises `ValueError` with actionable messages when configuration is malformed.
    """
    dotenv.load_dotenv()

    name = (os.getenv("STRATEGY_NAME") or "ss1").strip().lower()
    if name not in _DEFAULT_INTERVALS:
        raise ValueError(f"STRATEGY_NAME must be one of {sorted(_DEFAULT_INTERVALS)}. Got: {name!r}")

    try:
        input_values = [Decimal(v) for v in _get_env_list("STRATEGY_INPUT_VALUES", _DEFAULT_INPUT_VALUES)]
    except InvalidOperation as exc:
        raise ValueError(f"STRATEGY_INPUT_VALUES must be numbers. Got: {os.getenv('STRATEGY_INPUT_VALUES')!r}") from exc

    strategy = StrategyConfig(
        name=name,
        interval_s=_get_env_number("STRATEGY_INTERVAL_S", _DEFAULT_INTERVALS[name], float),
        data_dir=os.getenv("STRATEGY_DATA_DIR") or "./data",
        symbols=_get_env_list("STRATEGY_SYMBOLS", _DEFAULT_SYMBOLS),
        input_values=input_values,
        rough_prices=_get_env_decimal_map("STRATEGY_ROUGH_PRICES", _DEFAULT_ROUGH_PRICES),
        min_edge_bps=Decimal(str(_get_env_number("STRATEGY_MIN_EDGE_BPS", 30.0, float))),
    )
    execution = ExecutionConfig(
        create_attempts=_get_env_number("EXECUTION_CREATE_ATTEMPTS", 3, int),
        poll_attempts=_get_env_number("EXECUTION_POLL_ATTEMPTS", 3, int),
        poll_delay_s=_get_env_number("EXECUTION_POLL_DELAY_S", 1.0, float),
    )
    server = ServerConfig(
        port=_get_env_number("PORT", 8080, int),
        observability_db_path=os.getenv("OBSERVABILITY_DB_PATH") or None,
        log_level=os.getenv("LOG_LEVEL") or "INFO",
    )
    return Config(strategy=strategy, execution=execution, server=server)


def load_lighter_config() -> LighterConfig:
    """Load Lighter credentials and client knobs (requires a loaded `.env`)."""
    dotenv.load_dotenv()
    return LighterConfig(
        base_url=_get_required_env("LIGHTER_BASE_URL"),
        private_key=_get_required_env("LIGHTER_PRIVATE_KEY"),
        account_index=_get_required_int("LIGHTER_ACCOUNT_INDEX"),
        api_key_index=_get_env_number("LIGHTER_API_KEY_INDEX", 0, int),
        rate_limit=_get_env_number("LIGHTER_RATE_LIMIT", 10, int),
        max_attempt=_get_env_number("LIGHTER_MAX_ATTEMPT", 5, int),
        base_delay=_get_env_number("LIGHTER_BASE_DELAY", 0.5, float),
        backoff_multiplier=_get_env_number("LIGHTER_BACKOFF_MULTIPLIER", 2.0, float),
        max_delay=_get_env_number("LIGHTER_MAX_DELAY", 30.0, float),
        orderbook_limit=_get_env_number("LIGHTER_ORDERBOOK_LIMIT", 100, int),
        price_protection=_get_env_bool("LIGHTER_PRICE_PROTECTION", True),
    )


def load_shadow_config() -> ShadowConfig:
    """Load the Shadow aggregator / chain node configuration."""
    dotenv.load_dotenv()

    token_addresses: dict[str, str] = {"USDC": _get_required_env("SHADOW_TOKEN_USDC")}
    for symbol in ("BTC", "ETH", "SONIC"):
        address = os.getenv(f"SHADOW_TOKEN_{symbol}")
        if address:
            token_addresses[symbol] = address.strip()

    return ShadowConfig(
        api_url=_get_required_env("SHADOW_API_URL"),
        rpc_url=_get_required_env("SHADOW_RPC_URL"),
        wallet_address=_get_required_env("SHADOW_WALLET_ADDRESS"),
        router_address=_get_required_env("SHADOW_ROUTER_ADDRESS"),
        chain_id=_get_env_number("SHADOW_CHAIN_ID", 146, int),
        slippage_tolerance=Decimal(str(_get_env_number("SHADOW_SLIPPAGE_TOLERANCE", 20.0, float))),
        deadline_s=_get_env_number("SHADOW_DEADLINE_S", 10800, int),
        token_addresses=token_addresses,
        rate_limit=_get_env_number("SHADOW_RATE_LIMIT", 5, int),
        max_attempt=_get_env_number("SHADOW_MAX_ATTEMPT", 5, int),
        base_delay=_get_env_number("SHADOW_BASE_DELAY", 0.5, float),
        backoff_multiplier=_get_env_number("SHADOW_BACKOFF_MULTIPLIER", 2.0, float),
        max_delay=_get_env_number("SHADOW_MAX_DELAY", 30.0, float),
    )
