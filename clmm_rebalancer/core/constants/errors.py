"""Substrings and regexes matched against chain / contract error messages.

The chain only surfaces failures as formatted strings, so classification is
pattern based. Keep every pattern here rather than inline at the call site.
"""

import re

# Owned object was consumed or re-versioned by another transaction in flight.
STALE_OBJECT_SUBSTRINGS = (
    "is not available for consumption",
    "current version:",
)
# Both must appear together ("Object ... Version ... Digest ...").
STALE_OBJECT_VERSION_DIGEST = ("Version", "Digest")

# Validator still holds a lock from a previous transaction on the same object.
PENDING_TX_MARKER = "pending"
PENDING_TX_QUALIFIERS = ("seconds old", "above threshold")

MOVE_ABORT_MARKER = "MoveAbort"
ZERO_LIQUIDITY_ABORT_FUNCTION = "add_liquidity_fix_coin"
# Abort code 0 from add_liquidity_fix_coin: computed liquidity was zero.
ZERO_LIQUIDITY_ABORT_CODE_RE = re.compile(r",\s*0\s*\)")

INSUFFICIENT_BALANCE_RE = re.compile(
    r"Insufficient balance for ([^\s,]+)\s*,\s*expect\s+(\d+)", re.IGNORECASE
)
