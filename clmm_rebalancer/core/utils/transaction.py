from __future__ import annotations

from loguru import logger

from clmm_rebalancer.core.adapters.models import (
    SubmittableTransaction,
    TransactionResult,
)
from clmm_rebalancer.core.clients.protocols import ChainClient
from clmm_rebalancer.core.errors import TransactionFailedError


async def execute_transaction(
    chain: ChainClient, transaction: SubmittableTransaction, *, action: str
) -> TransactionResult:
    """Sign, submit and require a ``success`` execution status."""
    result = await chain.sign_and_execute(transaction)
    if not result.succeeded:
        logger.warning(f"{action} tx {result.digest} failed: {result.error}")
        raise TransactionFailedError(result.digest, result.error, action=action)

    gas = result.gas_used.total if result.gas_used is not None else None
    logger.debug(f"{action} tx {result.digest} succeeded (gas={gas})")
    return result
