"""NoC module: topology, traffic flow routing and NoC placement cost."""

from .topology import NocTopology, TrafficFlow
from .routing import NocRouting, NocRoutingAlgorithm, ShortestPathRouting, XYRouting, create_noc_routing
from .cost_handler import NocCostHandler

__all__ = [
    "NocTopology",
    "TrafficFlow",
    "NocRouting",
    "NocRoutingAlgorithm",
    "ShortestPathRouting",
    "XYRouting",
    "create_noc_routing",
    "NocCostHandler"
]
