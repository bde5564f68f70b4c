from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _is_uint_string(value: str) -> bool:
    return value.isdigit()


def _require_uint_string(value: str, field: str) -> str:
    if not isinstance(value, str) or not _is_uint_string(value):
        raise ValueError(f"{field} must be a non-negative integer string, got {value!r}")
    return value


class PoolInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    pool_address: str
    current_tick_index: int
    tick_spacing: int = Field(gt=0)
    current_sqrt_price: int = Field(ge=0)
    coin_type_a: str
    coin_type_b: str


class TickRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    tick_lower: int
    tick_upper: int

    @model_validator(mode="after")
    def _ordered(self) -> TickRange:
        if self.tick_lower > self.tick_upper:
            raise ValueError(
                f"tick_lower {self.tick_lower} > tick_upper {self.tick_upper}"
            )
        return self

    @property
    def width(self) -> int:
        return self.tick_upper - self.tick_lower

    def as_tuple(self) -> tuple[int, int]:
        return self.tick_lower, self.tick_upper


class PositionInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    position_id: str
    pool_address: str
    tick_lower: int
    tick_upper: int
    liquidity: str = "0"
    coin_type_a: str
    coin_type_b: str
    in_range: bool = False

    @model_validator(mode="after")
    def _ordered(self) -> PositionInfo:
        if self.tick_lower > self.tick_upper:
            raise ValueError(
                f"position {self.position_id}: tick_lower {self.tick_lower} > tick_upper {self.tick_upper}"
            )
        return self

    @property
    def liquidity_value(self) -> int | None:
        """Parsed liquidity, ``None`` when the raw value is not an integer string."""
        raw = (self.liquidity or "").strip()
        if not _is_uint_string(raw):
            return None
        return int(raw)

    @property
    def has_liquidity(self) -> bool:
        value = self.liquidity_value
        return value is not None and value > 0

    @property
    def range(self) -> TickRange:
        return TickRange(tick_lower=self.tick_lower, tick_upper=self.tick_upper)


class FreedAmounts(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount_a: str = "0"
    amount_b: str = "0"

    @field_validator("amount_a", "amount_b")
    @classmethod
    def _uint(cls, v: str, info: Any) -> str:
        return _require_uint_string(v, info.field_name)

    @property
    def is_empty(self) -> bool:
        return int(self.amount_a) == 0 and int(self.amount_b) == 0


class BalanceChange(BaseModel):
    owner: str | None = None
    coin_type: str
    amount: int


class GasCostSummary(BaseModel):
    computation_cost: int = 0
    storage_cost: int = 0
    storage_rebate: int = 0
    non_refundable_storage_fee: int = 0

    @property
    def total(self) -> int:
        return self.computation_cost + self.storage_cost - self.storage_rebate


class TransactionResult(BaseModel):
    digest: str
    status: Literal["success", "failure"]
    error: str | None = None
    balance_changes: list[BalanceChange] | None = None
    gas_used: GasCostSummary | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


class SubmittableTransaction(BaseModel):
    """Opaque payload built by the protocol SDK, ready for signing."""

    kind: Literal["remove_liquidity", "add_liquidity", "swap"]
    tx_bytes: str
    gas_budget: int | None = None
    metadata: dict[str, Any] = {}


class RemoveLiquidityParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    pool_id: str
    pos_id: str
    delta_liquidity: str
    min_amount_a: str = "0"
    min_amount_b: str = "0"
    coin_type_a: str
    coin_type_b: str
    collect_fee: bool = True
    rewarder_coin_types: list[str] = []

    @field_validator("delta_liquidity", "min_amount_a", "min_amount_b")
    @classmethod
    def _uint(cls, v: str, info: Any) -> str:
        return _require_uint_string(v, info.field_name)

    @field_validator("delta_liquidity")
    @classmethod
    def _positive(cls, v: str) -> str:
        if int(v) <= 0:
            raise ValueError("delta_liquidity must be positive")
        return v


class AddLiquidityFixTokenParams(BaseModel):
    """Single-sided ("zap") add: exactly one of amount_a / amount_b is non-zero."""

    model_config = ConfigDict(frozen=True)

    pool_id: str
    pos_id: str = ""
    tick_lower: str
    tick_upper: str
    amount_a: str
    amount_b: str
    slippage: float = Field(ge=0, lt=1)
    fix_amount_a: bool
    is_open: bool
    coin_type_a: str
    coin_type_b: str
    collect_fee: bool = False
    rewarder_coin_types: list[str] = []

    @field_validator("amount_a", "amount_b")
    @classmethod
    def _uint(cls, v: str, info: Any) -> str:
        return _require_uint_string(v, info.field_name)

    @model_validator(mode="after")
    def _single_sided(self) -> AddLiquidityFixTokenParams:
        a_zero = int(self.amount_a) == 0
        b_zero = int(self.amount_b) == 0
        if a_zero == b_zero:
            raise ValueError(
                f"exactly one of amount_a/amount_b must be non-zero "
                f"(amount_a={self.amount_a}, amount_b={self.amount_b})"
            )
        if self.fix_amount_a == a_zero:
            raise ValueError("fix_amount_a must point at the non-zero amount")
        if int(self.tick_lower) >= int(self.tick_upper):
            raise ValueError(
                f"tick_lower {self.tick_lower} must be < tick_upper {self.tick_upper}"
            )
        if self.is_open and self.pos_id:
            raise ValueError("pos_id must be empty when opening a new position")
        if not self.is_open and not self.pos_id:
            raise ValueError("pos_id is required when adding to an existing position")
        return self


class SwapParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    pool_id: str
    a2b: bool
    by_amount_in: bool = True
    amount: str
    amount_limit: str = "0"
    coin_type_a: str
    coin_type_b: str

    @field_validator("amount", "amount_limit")
    @classmethod
    def _uint(cls, v: str, info: Any) -> str:
        return _require_uint_string(v, info.field_name)

    @field_validator("amount")
    @classmethod
    def _positive(cls, v: str) -> str:
        if int(v) <= 0:
            raise ValueError("swap amount must be positive")
        return v


class RebalanceResult(BaseModel):
    success: bool
    transaction_digest: str | None = None
    error: str | None = None
    old_position: TickRange | None = None
    new_position: TickRange | None = None

    @property
    def message(self) -> str:
        if not self.success:
            return f"Rebalance failed: {self.error or 'unknown error'}"
        old = self.old_position.as_tuple() if self.old_position else None
        new = self.new_position.as_tuple() if self.new_position else None
        if old is not None and new is not None and self.transaction_digest is None:
            return f"No transaction submitted: range {list(old)} -> {list(new)}"
        parts = []
        if old is not None:
            parts.append(f"old={list(old)}")
        if new is not None:
            parts.append(f"new={list(new)}")
        if self.transaction_digest:
            parts.append(f"tx={self.transaction_digest}")
        return "Rebalance succeeded: " + " ".join(parts)
