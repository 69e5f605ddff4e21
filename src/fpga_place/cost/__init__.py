"""Cost module: placement cost terms with incremental updates."""

from .costs import CostMethod, NocCostTerms, NocWeights, PlaceAlgorithm, PlacerCosts
from .net_cost import NetCostHandler
from .timing_cost import TimingCostHandler

__all__ = [
    "CostMethod",
    "NocCostTerms",
    "NocWeights",
    "PlaceAlgorithm",
    "PlacerCosts",
    "NetCostHandler",
    "TimingCostHandler"
]
