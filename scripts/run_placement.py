#!/usr/bin/env python3
"""Run the placer on a design JSON file.

Usage:
    python scripts/run_placement.py \
        --design data/test_design.json \
        --config configs/placer.yaml \
        --output results/placement.json
"""

import argparse
import logging
import sys
from pathlib import Path

# Add package source to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fpga_place.config import PlacerConfig
from fpga_place.errors import PlacementError
from fpga_place.io.design_io import read_design
from fpga_place.io.placement_io import export_placement
from fpga_place.placer import Placer
from fpga_place.utils.logging import setup_logging

logger = logging.getLogger("run_placement")


def main():
    parser = argparse.ArgumentParser(description="Place a design")
    parser.add_argument("--design", type=str, required=True,
                        help="Design JSON file")
    parser.add_argument("--config", type=str, default=None,
                        help="Placer YAML config")
    parser.add_argument("--output", type=str, default="results/placement.json",
                        help="Output placement file")
    parser.add_argument("--format", type=str, default="json", choices=["json", "place"],
                        help="Output format")
    parser.add_argument("--seed", type=int, default=None,
                        help="Override config seed")
    parser.add_argument("--log_file", type=str, default=None,
                        help="Also log to this file")
    parser.add_argument("--verbose", action="store_true",
                        help="Debug logging")

    args = parser.parse_args()

    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)

    config = PlacerConfig.from_yaml(args.config) if args.config else PlacerConfig()
    if args.seed is not None:
        config.seed = args.seed

    design = read_design(args.design)
    if config.noc.enabled and design.noc_topology is None:
        logger.warning("Design has no NoC description, disabling NoC placement")
        config.noc.enabled = False

    placer = Placer(
        design.netlist,
        design.grid,
        config,
        noc_topology=design.noc_topology,
        traffic_flows=design.traffic_flows
    )
    try:
        report = placer.place()
    except PlacementError as e:
        logger.error(f"Placement failed: {e}")
        return 1

    output_file = Path(args.output)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    export_placement(placer.registry, output_file, report, format=args.format)

    logger.info(f"Wrote placement to {output_file}")
    logger.info(f"  bb_cost: {report.costs['bb_cost']:.2f}")
    if report.cpd is not None:
        logger.info(f"  CPD: {report.cpd * 1e9:.4f} ns")
    logger.info(f"  Moves: {report.num_moves} ({report.acceptance_rate:.1%} accepted)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
