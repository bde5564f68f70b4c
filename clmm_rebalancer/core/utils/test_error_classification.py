from __future__ import annotations

import pytest

from clmm_rebalancer.core.errors import ContractAbortError, TransactionFailedError
from clmm_rebalancer.core.utils.error_classification import (
    error_message,
    is_fatal_deployment_error,
    is_move_abort,
    is_pending_transaction_error,
    is_retryable_removal_error,
    is_stale_object_error,
    is_zero_liquidity_abort,
    parse_insufficient_balance,
)

ZERO_LIQ_ABORT = (
    'MoveAbort(MoveLocation { module: ModuleId { address: 0x1eab, name: Identifier("pool_script_v2") }, '
    'function: 3, instruction: 42, function_name: Some("add_liquidity_fix_coin") }, 0) in command 1'
)
OTHER_ABORT = (
    'MoveAbort(MoveLocation { module: ModuleId { address: 0x1eab, name: Identifier("pool") }, '
    'function: 12, instruction: 18, function_name: Some("add_liquidity_internal") }, 5) in command 2'
)


@pytest.mark.parametrize(
    "msg",
    [
        "Object 0xabc is not available for consumption, its current version: 12",
        "Transaction needs to be rebuilt because object 0x1 version 0x2 is unavailable, current version: 0x3",
        "Object ID 0xabc Version 0x4 Digest 7hT is not available",
    ],
)
def test_stale_object_errors(msg):
    assert is_stale_object_error(msg)
    assert is_retryable_removal_error(RuntimeError(msg))


@pytest.mark.parametrize(
    "msg",
    [
        "Transaction is pending: previous tx is 12 seconds old",
        "object locked by pending transaction, age above threshold",
    ],
)
def test_pending_transaction_errors(msg):
    assert is_pending_transaction_error(msg)
    assert is_retryable_removal_error(msg)


def test_version_without_digest_is_not_stale():
    assert not is_stale_object_error("Version mismatch")


def test_pending_without_qualifier_is_not_retryable():
    assert not is_pending_transaction_error("pending")
    assert not is_retryable_removal_error("insufficient gas")


def test_zero_liquidity_abort_is_not_fatal():
    assert is_move_abort(ZERO_LIQ_ABORT)
    assert is_zero_liquidity_abort(ZERO_LIQ_ABORT)
    assert not is_fatal_deployment_error(RuntimeError(ZERO_LIQ_ABORT))


def test_other_aborts_are_fatal():
    assert is_move_abort(OTHER_ABORT)
    assert not is_zero_liquidity_abort(OTHER_ABORT)
    assert is_fatal_deployment_error(TransactionFailedError("0xd", OTHER_ABORT, action="add"))


def test_non_abort_errors_are_not_fatal():
    assert not is_fatal_deployment_error(RuntimeError("connection reset"))


def test_contract_abort_error_uses_cause_message():
    cause = RuntimeError(OTHER_ABORT)
    try:
        raise ContractAbortError("wrapped") from cause
    except ContractAbortError as exc:
        assert error_message(exc) == OTHER_ABORT
        assert is_fatal_deployment_error(exc)


def test_parse_insufficient_balance():
    exc = RuntimeError(
        "Insufficient balance for 0xdba3::usdc::USDC , expect 1234567 but got 1000"
    )
    assert parse_insufficient_balance(exc) == ("0xdba3::usdc::USDC", 1234567)


def test_parse_insufficient_balance_case_insensitive():
    assert parse_insufficient_balance("insufficient BALANCE for 0x2::sui::SUI, expect 9") == (
        "0x2::sui::SUI",
        9,
    )


def test_parse_insufficient_balance_no_match():
    assert parse_insufficient_balance("Insufficient gas") is None
