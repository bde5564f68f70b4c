from __future__ import annotations

import re

from clmm_rebalancer.core.constants.sui import GAS_COIN_TYPES

_LEADING_ZEROS_RE = re.compile(r"^0x0+")


def normalize_address(address: str) -> str:
    addr = address.strip().lower()
    if not addr.startswith("0x"):
        addr = f"0x{addr}"
    return _LEADING_ZEROS_RE.sub("0x", addr)


def normalize_coin_type(coin_type: str) -> str:
    """Lower-case and strip leading zeros from the address part.

    ``0x0000...0002::sui::SUI`` and ``0x2::sui::SUI`` normalise to the same
    string. Coin types from Move ``TypeName`` values come without ``0x``.
    """
    return normalize_address(coin_type)


_GAS_COIN_TYPES_NORMALIZED = frozenset(normalize_coin_type(ct) for ct in GAS_COIN_TYPES)


def coin_types_match(a: str, b: str) -> bool:
    return normalize_coin_type(a) == normalize_coin_type(b)


def is_gas_coin(coin_type: str) -> bool:
    return normalize_coin_type(coin_type) in _GAS_COIN_TYPES_NORMALIZED


def safe_balance(raw_balance: int, coin_type: str, gas_reserve: int) -> int:
    """Spendable balance after holding back gas for the gas-native coin."""
    if is_gas_coin(coin_type) and raw_balance > gas_reserve:
        return raw_balance - gas_reserve
    return raw_balance
