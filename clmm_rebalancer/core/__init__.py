from clmm_rebalancer.core.adapters.BaseAdapter import BaseAdapter
from clmm_rebalancer.core.strategies.Strategy import (
    StatusDict,
    StatusTuple,
    Strategy,
)

__all__ = [
    "Strategy",
    "StatusDict",
    "StatusTuple",
    "BaseAdapter",
]
