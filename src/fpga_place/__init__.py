"""FPGA placer: analytical seed + simulated annealing refinement.

Core loop:
1. Seed: Random legal placement, optionally refined by quadratic solves
2. Anneal: Propose moves, evaluate incremental cost deltas, accept/reject
3. Verify: Recompute every cost from scratch and check legality

Components:
- core/ - Device grid, netlist, placement registry
- analytical/ - Hybrid clique/star quadratic solver and legalizer
- cost/ - Bounding-box, timing and aggregate cost state
- timing/ - Delay models and static timing analysis
- noc/ - NoC topology, flow routing and NoC cost
- moves/ - Move generators
- anneal/ - Annealing schedule and refinement loop
"""

__version__ = "0.1.0"

from .config import PlacerConfig, AnalyticalConfig, AnnealConfig, NocConfig
from .placer import Placer, PlacementReport
from .errors import PlacementError, ConfigError

__all__ = [
    "PlacerConfig",
    "AnalyticalConfig",
    "AnnealConfig",
    "NocConfig",
    "Placer",
    "PlacementReport",
    "PlacementError",
    "ConfigError",
    "run_placer"
]


def run_placer(design_path: str, output_path: str, config_path: str = None, **overrides):
    """High-level API to run the placer.

    Args:
        design_path: Path to design JSON (see io.design_io)
        output_path: Path to write placement JSON
        config_path: Optional YAML config
        **overrides: Top-level PlacerConfig fields overriding the config file

    Returns:
        PlacementReport
    """
    from .io.design_io import read_design
    from .io.placement_io import export_placement

    config = PlacerConfig.from_yaml(config_path) if config_path else PlacerConfig()
    if overrides:
        data = config.to_dict()
        data.update(overrides)
        config = PlacerConfig.from_dict(data)

    design = read_design(design_path)
    placer = Placer(
        design.netlist,
        design.grid,
        config,
        noc_topology=design.noc_topology,
        traffic_flows=design.traffic_flows
    )
    report = placer.place()

    export_placement(placer.registry, output_path, report)

    return report
