from __future__ import annotations


class RebalanceError(RuntimeError):
    pass


class TransactionFailedError(RebalanceError):
    """Chain accepted the transaction but reported execution status ``failure``."""

    def __init__(self, digest: str | None, error: str | None, *, action: str = "transaction"):
        self.digest = digest
        self.error = error or "Unknown error"
        self.action = action
        super().__init__(f"{action} failed: {self.error}")


class ContractAbortError(RebalanceError):
    """Non-retryable Move abort raised by the protocol contract."""


class SwapRecoveryError(RebalanceError):
    pass


class PreconditionError(RebalanceError):
    """Raised before any transaction is submitted."""


class PositionNotFoundError(PreconditionError):
    def __init__(self, position_id: str):
        self.position_id = position_id
        super().__init__(f"Position {position_id} not found")


class InsufficientBalanceError(PreconditionError):
    pass


class TickOutOfRangeError(PreconditionError):
    def __init__(self, current_tick: int, tick_lower: int, tick_upper: int):
        self.current_tick = current_tick
        self.tick_lower = tick_lower
        self.tick_upper = tick_upper
        super().__init__(
            f"Current tick {current_tick} is outside configured range "
            f"[{tick_lower}, {tick_upper}] - aborting zap-in"
        )


class ZeroLiquidityEstimateError(PreconditionError):
    pass


class SuiRpcError(RebalanceError):
    """JSON-RPC level error returned by the fullnode."""

    def __init__(self, method: str, code: int | None, message: str):
        self.method = method
        self.code = code
        super().__init__(f"{method} RPC error {code}: {message}")
