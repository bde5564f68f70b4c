DEFAULT_HTTP_TIMEOUT = 30.0  # HTTP client timeout

DEFAULT_CHECK_INTERVAL_S = 300
DEFAULT_REBALANCE_THRESHOLD = 0.05
DEFAULT_MAX_SLIPPAGE = 0.01
DEFAULT_GAS_BUDGET = 100_000_000  # 0.1 SUI in MIST
DEFAULT_LOG_LEVEL = "INFO"

# Removal only retries stale-object / pending-tx errors, with exponential backoff.
REMOVE_LIQUIDITY_MAX_ATTEMPTS = 3
REMOVE_LIQUIDITY_BASE_DELAY_S = 2.0

# Deployment retries everything except hard contract aborts, with a fixed delay.
ADD_LIQUIDITY_MAX_ATTEMPTS = 3
ADD_LIQUIDITY_RETRY_DELAY_S = 3.0

SWAP_BUFFER_PERCENT = 10
BPS_DENOMINATOR = 10_000

ADAPTER_POSITION_MONITOR = "POSITION_MONITOR"
ADAPTER_LIQUIDITY_REMOVAL = "LIQUIDITY_REMOVAL"
ADAPTER_LIQUIDITY_DEPLOYMENT = "LIQUIDITY_DEPLOYMENT"
ADAPTER_SWAP = "SWAP"

DEFAULT_PAGINATION_LIMIT = 50
