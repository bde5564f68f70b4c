import json
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

from clmm_rebalancer.core.constants.base import (
    ADD_LIQUIDITY_MAX_ATTEMPTS,
    ADD_LIQUIDITY_RETRY_DELAY_S,
    DEFAULT_CHECK_INTERVAL_S,
    DEFAULT_GAS_BUDGET,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAX_SLIPPAGE,
    DEFAULT_REBALANCE_THRESHOLD,
    REMOVE_LIQUIDITY_BASE_DELAY_S,
    REMOVE_LIQUIDITY_MAX_ATTEMPTS,
    SWAP_BUFFER_PERCENT,
)
from clmm_rebalancer.core.constants.sui import NETWORK_MAINNET, NETWORKS

_CONFIG_ENV_KEYS = ("CLMM_REBALANCER_CONFIG_PATH", "CLMM_REBALANCER_CONFIG")
_DEFAULT_CONFIG_FILENAME = "config.json"
_CONFIG_SECTION = "rebalancer"
_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def _find_project_root(start: Path) -> Path | None:
    cur = start.resolve()
    for parent in [cur, *cur.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    return None


def _project_root() -> Path | None:
    return _find_project_root(Path.cwd()) or _find_project_root(Path(__file__).parent)


def resolve_config_path(path: str | Path | None = None) -> Path:
    if path is not None:
        return Path(path).expanduser()

    env_path = next(
        (os.getenv(k, "").strip() for k in _CONFIG_ENV_KEYS if os.getenv(k)), ""
    )
    if env_path:
        p = Path(env_path).expanduser()
        if p.is_absolute():
            return p
        root = _project_root()
        return (root / p) if root else p

    root = _project_root()
    return (root / _DEFAULT_CONFIG_FILENAME) if root else Path(_DEFAULT_CONFIG_FILENAME)


def load_config_json(
    path: str | Path | None = None, *, require_exists: bool = False
) -> dict[str, Any]:
    cfg_path = resolve_config_path(path)
    if not cfg_path.exists():
        if require_exists:
            raise FileNotFoundError(f"Config file not found: {cfg_path}")
        return {}
    try:
        return json.loads(cfg_path.read_text())
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in config file {cfg_path}: {exc}") from exc


CONFIG: dict[str, Any] = {}


def set_config(config: dict[str, Any]) -> None:
    """Replace the global CONFIG dict in-place.

    This allows code that imported CONFIG at module import time to see updates.
    """
    CONFIG.clear()
    CONFIG.update(config)


def load_config(
    path: str | Path | None = None, *, require_exists: bool = False
) -> None:
    """Load config from disk into the global CONFIG dict."""
    set_config(load_config_json(path, require_exists=require_exists))


def _parse_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUTHY:
        return True
    if text in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def _parse_optional_int(value: Any, name: str) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def _parse_amount(value: Any, name: str) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if not text.isdigit():
        raise ValueError(f"{name} must be a non-negative integer amount, got {value!r}")
    return text


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass
class BotConfig:
    pool_address: str
    network: str = NETWORK_MAINNET
    private_key: str | None = None
    wallet_address: str | None = None
    rpc_url: str | None = None
    check_interval: int = DEFAULT_CHECK_INTERVAL_S
    rebalance_threshold: float = DEFAULT_REBALANCE_THRESHOLD
    max_slippage: float = DEFAULT_MAX_SLIPPAGE
    gas_budget: int = DEFAULT_GAS_BUDGET
    log_level: str = DEFAULT_LOG_LEVEL
    verbose_logs: bool = False
    dry_run: bool = False
    position_id: str | None = None
    lower_tick: int | None = None
    upper_tick: int | None = None
    range_width: int | None = None
    token_a_amount: str | None = None
    token_b_amount: str | None = None
    strict_tick_validation: bool = False
    swap_buffer_percent: int = SWAP_BUFFER_PERCENT
    remove_max_attempts: int = REMOVE_LIQUIDITY_MAX_ATTEMPTS
    remove_base_delay_s: float = REMOVE_LIQUIDITY_BASE_DELAY_S
    add_max_attempts: int = ADD_LIQUIDITY_MAX_ATTEMPTS
    add_retry_delay_s: float = ADD_LIQUIDITY_RETRY_DELAY_S
    sdk_factory: str | None = None
    signer_factory: str | None = None

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if not self.pool_address:
            raise ValueError("pool_address is required")
        if self.network not in NETWORKS:
            raise ValueError(
                f"network must be one of {sorted(NETWORKS)}, got {self.network!r}"
            )
        if self.check_interval <= 0:
            raise ValueError("check_interval must be positive")
        if self.gas_budget <= 0:
            raise ValueError("gas_budget must be positive")
        if not 0 <= self.max_slippage < 1:
            raise ValueError("max_slippage must be in [0, 1)")
        if self.rebalance_threshold < 0:
            raise ValueError("rebalance_threshold must be >= 0")
        if (self.lower_tick is None) != (self.upper_tick is None):
            raise ValueError("lower_tick and upper_tick must be set together")
        if self.lower_tick is not None and self.lower_tick >= self.upper_tick:
            raise ValueError("lower_tick must be below upper_tick")
        if self.range_width is not None and self.range_width <= 0:
            raise ValueError("range_width must be positive")
        if self.swap_buffer_percent < 0:
            raise ValueError("swap_buffer_percent must be >= 0")
        if self.remove_max_attempts < 1 or self.add_max_attempts < 1:
            raise ValueError("retry attempts must be >= 1")

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.verbose_logs else self.log_level.upper()

    @property
    def resolved_rpc_url(self) -> str:
        return self.rpc_url or NETWORKS[self.network]["rpc_url"]

    def to_adapter_config(self) -> dict[str, Any]:
        """Plain dict handed to adapters and the strategy (credentials stripped)."""
        data = asdict(self)
        data.pop("private_key", None)
        return data

    def redacted(self) -> dict[str, Any]:
        data = asdict(self)
        if data.get("private_key"):
            data["private_key"] = "***"
        return data


# field name -> environment variable
_ENV_VARS: dict[str, str] = {
    "network": "NETWORK",
    "private_key": "PRIVATE_KEY",
    "wallet_address": "WALLET_ADDRESS",
    "rpc_url": "SUI_RPC_URL",
    "check_interval": "CHECK_INTERVAL",
    "rebalance_threshold": "REBALANCE_THRESHOLD",
    "pool_address": "POOL_ADDRESS",
    "max_slippage": "MAX_SLIPPAGE",
    "gas_budget": "GAS_BUDGET",
    "log_level": "LOG_LEVEL",
    "verbose_logs": "VERBOSE_LOGS",
    "dry_run": "DRY_RUN",
    "position_id": "POSITION_ID",
    "lower_tick": "LOWER_TICK",
    "upper_tick": "UPPER_TICK",
    "range_width": "RANGE_WIDTH",
    "token_a_amount": "TOKEN_A_AMOUNT",
    "token_b_amount": "TOKEN_B_AMOUNT",
    "strict_tick_validation": "STRICT_TICK_VALIDATION",
    "swap_buffer_percent": "SWAP_BUFFER_PERCENT",
    "sdk_factory": "SDK_FACTORY",
    "signer_factory": "SIGNER_FACTORY",
}

_BOOL_FIELDS = {"verbose_logs", "dry_run", "strict_tick_validation"}
_INT_FIELDS = {
    "check_interval",
    "gas_budget",
    "swap_buffer_percent",
    "remove_max_attempts",
    "add_max_attempts",
}
_OPTIONAL_INT_FIELDS = {"lower_tick", "upper_tick", "range_width"}
_FLOAT_FIELDS = {
    "rebalance_threshold",
    "max_slippage",
    "remove_base_delay_s",
    "add_retry_delay_s",
}
_AMOUNT_FIELDS = {"token_a_amount", "token_b_amount"}


def _coerce(name: str, value: Any) -> Any:
    if name in _BOOL_FIELDS:
        return _parse_bool(value, name)
    if name in _OPTIONAL_INT_FIELDS:
        return _parse_optional_int(value, name)
    if name in _AMOUNT_FIELDS:
        return _parse_amount(value, name)
    if name in _INT_FIELDS:
        parsed = _parse_optional_int(value, name)
        if parsed is None:
            raise ValueError(f"{name} must be an integer")
        return parsed
    if name in _FLOAT_FIELDS:
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{name} must be a number, got {value!r}") from exc
    return _optional_str(value)


def load_bot_config(
    config: Mapping[str, Any] | None = None,
    env: Mapping[str, str] | None = None,
) -> BotConfig:
    """Build a BotConfig from the ``rebalancer`` config section overlaid with env vars."""
    section = dict((config if config is not None else CONFIG).get(_CONFIG_SECTION, {}))
    environ = os.environ if env is None else env

    known = {f.name for f in fields(BotConfig)}
    unknown = set(section) - known
    if unknown:
        raise ValueError(f"Unknown rebalancer config keys: {sorted(unknown)}")

    values: dict[str, Any] = {}
    for name, raw in section.items():
        values[name] = _coerce(name, raw)
    for name, var in _ENV_VARS.items():
        raw = environ.get(var)
        if raw is not None and raw.strip() != "":
            values[name] = _coerce(name, raw)

    if not values.get("pool_address"):
        raise ValueError("pool_address is required (set POOL_ADDRESS or rebalancer.pool_address)")
    return BotConfig(**{k: v for k, v in values.items() if v is not None})
