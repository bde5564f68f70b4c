from __future__ import annotations

from clmm_rebalancer.core.constants.errors import (
    INSUFFICIENT_BALANCE_RE,
    MOVE_ABORT_MARKER,
    PENDING_TX_MARKER,
    PENDING_TX_QUALIFIERS,
    STALE_OBJECT_SUBSTRINGS,
    STALE_OBJECT_VERSION_DIGEST,
    ZERO_LIQUIDITY_ABORT_CODE_RE,
    ZERO_LIQUIDITY_ABORT_FUNCTION,
)
from clmm_rebalancer.core.errors import ContractAbortError


def error_message(exc: BaseException | str) -> str:
    if isinstance(exc, str):
        return exc
    cause = exc.__cause__
    if isinstance(exc, ContractAbortError) and cause is not None:
        return str(cause)
    return str(exc)


def is_stale_object_error(exc: BaseException | str) -> bool:
    msg = error_message(exc)
    if any(s in msg for s in STALE_OBJECT_SUBSTRINGS):
        return True
    return all(s in msg for s in STALE_OBJECT_VERSION_DIGEST)


def is_pending_transaction_error(exc: BaseException | str) -> bool:
    msg = error_message(exc)
    return PENDING_TX_MARKER in msg and any(q in msg for q in PENDING_TX_QUALIFIERS)


def is_retryable_removal_error(exc: BaseException | str) -> bool:
    return is_stale_object_error(exc) or is_pending_transaction_error(exc)


def is_move_abort(exc: BaseException | str) -> bool:
    return MOVE_ABORT_MARKER in error_message(exc)


def is_zero_liquidity_abort(exc: BaseException | str) -> bool:
    msg = error_message(exc)
    return (
        MOVE_ABORT_MARKER in msg
        and ZERO_LIQUIDITY_ABORT_FUNCTION in msg
        and ZERO_LIQUIDITY_ABORT_CODE_RE.search(msg) is not None
    )


def is_fatal_deployment_error(exc: BaseException | str) -> bool:
    """Move aborts are final, except the zero-liquidity abort from add_liquidity_fix_coin."""
    if isinstance(exc, ContractAbortError):
        return True
    return is_move_abort(exc) and not is_zero_liquidity_abort(exc)


def parse_insufficient_balance(exc: BaseException | str) -> tuple[str, int] | None:
    """Extract ``(coin_type, expected_amount)`` from an insufficient-balance message."""
    match = INSUFFICIENT_BALANCE_RE.search(error_message(exc))
    if match is None:
        return None
    return match.group(1), int(match.group(2))
