#!/usr/bin/env python3
"""Create a synthetic design JSON file for placement testing.

Usage:
    python scripts/create_test_design.py --output data/test_design.json \
        --num_clbs 200 --grid_width 20 --grid_height 20 --dsp_column 10 --noc
"""

import argparse
import random
import sys
from pathlib import Path

# Add package source to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fpga_place.core.grid import DeviceGrid, Location, TileType
from fpga_place.core.netlist import Block, MacroMember, Net, Netlist, PlacementMacro
from fpga_place.io.design_io import Design, write_design
from fpga_place.noc.topology import NocTopology, TrafficFlow


def create_test_design(
    output_path: str,
    num_clbs: int = 100,
    num_inputs: int = 8,
    num_outputs: int = 8,
    grid_width: int = 16,
    grid_height: int = 16,
    dsp_column: int = None,
    num_dsp_chains: int = 2,
    noc: bool = False,
    max_fanout: int = 5,
    seed: int = 42
) -> Design:
    """Create a random design whose timing graph has no combinational loops.

    Nets only feed combinational blocks with a higher id than their
    driver, or sequential blocks, so every combinational path is acyclic.

    Args:
        output_path: Path to save the JSON file
        num_clbs: Number of logic blocks
        num_inputs: Number of input IOs (half of them fixed)
        num_outputs: Number of output IOs
        grid_width: Grid width
        grid_height: Grid height
        dsp_column: Column holding DSP tiles (None: no DSPs)
        num_dsp_chains: Number of vertical DSP carry-chain macros
        noc: Add a 2x2 NoC mesh with router blocks and traffic flows
        max_fanout: Maximum sinks per net
        seed: Random seed
    """
    random.seed(seed)

    hard_columns = {}
    if dsp_column is not None:
        hard_columns[dsp_column] = TileType("dsp", capacity=1, compatible_blocks=frozenset({"dsp"}))
    router_tiles = []
    if noc:
        xs = (grid_width // 4, 3 * grid_width // 4)
        ys = (grid_height // 4, 3 * grid_height // 4)
        router_tiles = [(x, y) for y in ys for x in xs]
    grid = DeviceGrid.island_style(grid_width, grid_height, hard_columns=hard_columns,
                                   router_tiles=router_tiles or None)

    blocks = []

    def add_block(name, block_type, fixed_loc=None, is_sequential=False):
        blocks.append(Block(len(blocks), name, block_type, fixed_loc, is_sequential))
        return len(blocks) - 1

    io_sites = [Location.from_row(row) for row in grid.legal_sites("io")]
    random.shuffle(io_sites)
    inputs = [
        add_block(f"in{i}", "io", io_sites.pop() if i % 2 == 0 else None, True)
        for i in range(num_inputs)
    ]

    logic = []
    for i in range(num_clbs):
        logic.append(add_block(f"clb{i}", "clb", is_sequential=random.random() < 0.2))

    macros = []
    if dsp_column is not None:
        for c in range(num_dsp_chains):
            length = random.randint(2, 3)
            chain = [add_block(f"dsp{c}_{k}", "dsp") for k in range(length)]
            logic.extend(chain)
            macros.append(PlacementMacro(
                len(macros), tuple(MacroMember(b, Location(0, k)) for k, b in enumerate(chain))
            ))

    routers = []
    if noc:
        routers = [add_block(f"noc_ip{i}", "noc_router", is_sequential=True) for i in range(len(router_tiles))]

    outputs = [add_block(f"out{i}", "io", is_sequential=True) for i in range(num_outputs)]

    def legal_sinks(driver):
        return [
            b for b in logic + routers + outputs
            if b != driver and (blocks[b].is_sequential or b > driver)
        ]

    nets = []
    for driver in inputs + logic + routers:
        candidates = legal_sinks(driver)
        if not candidates:
            continue
        fanout = min(len(candidates), random.randint(1, max_fanout))
        sinks = random.sample(candidates, fanout)
        nets.append(Net(len(nets), (driver, *sinks), name=f"net_{blocks[driver].name}"))

    design = Design(grid=grid, netlist=Netlist(blocks, nets, macros))

    if noc:
        tiles = [router_tiles[0:2], router_tiles[2:4]]
        design.noc_topology = NocTopology.mesh(tiles, link_bandwidth=1.0e9)
        for flow_id in range(2 * len(routers)):
            src, dst = random.sample(routers, 2)
            design.traffic_flows.append(
                TrafficFlow(flow_id, src, dst, bandwidth=random.uniform(1e8, 6e8),
                            max_latency=6.0e-9, priority=random.randint(1, 3))
            )

    output_file = Path(output_path)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    write_design(design, output_file)

    print(f"Created test design: {output_path}")
    print(f"  Grid size: {grid_width}x{grid_height}")
    print(f"  Blocks: {len(blocks)} ({len(macros)} macros)")
    print(f"  Nets: {len(nets)}")
    print(f"  Total pins: {sum(len(net.pins) for net in nets)}")
    if noc:
        print(f"  NoC: {design.noc_topology!r}, {len(design.traffic_flows)} flows")
    return design


def main():
    parser = argparse.ArgumentParser(description="Create a synthetic design JSON file")
    parser.add_argument("--output", type=str, default="data/test_design.json",
                       help="Output file path")
    parser.add_argument("--num_clbs", type=int, default=100,
                       help="Number of logic blocks")
    parser.add_argument("--num_inputs", type=int, default=8,
                       help="Number of input IOs")
    parser.add_argument("--num_outputs", type=int, default=8,
                       help="Number of output IOs")
    parser.add_argument("--grid_width", type=int, default=16,
                       help="Grid width")
    parser.add_argument("--grid_height", type=int, default=16,
                       help="Grid height")
    parser.add_argument("--dsp_column", type=int, default=None,
                       help="Column of DSP tiles")
    parser.add_argument("--noc", action="store_true",
                       help="Add a NoC mesh and traffic flows")
    parser.add_argument("--seed", type=int, default=42,
                       help="Random seed")

    args = parser.parse_args()

    create_test_design(
        output_path=args.output,
        num_clbs=args.num_clbs,
        num_inputs=args.num_inputs,
        num_outputs=args.num_outputs,
        grid_width=args.grid_width,
        grid_height=args.grid_height,
        dsp_column=args.dsp_column,
        noc=args.noc,
        seed=args.seed
    )


if __name__ == "__main__":
    main()
