from clmm_rebalancer.core.clients.protocols import ChainClient, ClmmSdk
from clmm_rebalancer.core.clients.SuiRpcClient import Signer, SuiRpcClient

__all__ = [
    "ChainClient",
    "ClmmSdk",
    "Signer",
    "SuiRpcClient",
]
