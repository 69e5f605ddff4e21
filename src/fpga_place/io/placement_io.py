"""Placement and checkpoint I/O."""

import json
from pathlib import Path
from typing import Dict, Optional, Union

from ..anneal.checkpoint import PlacementCheckpoint
from ..core.grid import Location
from ..core.placement import BlockLocRegistry
from ..placer import PlacementReport


def export_placement(
    registry: BlockLocRegistry,
    output_path: Union[str, Path],
    report: Optional[PlacementReport] = None,
    format: str = "json"
) -> None:
    """Export block locations.

    Args:
        registry: Placed registry
        output_path: Output file path
        report: Optional run report embedded in the JSON output
        format: "json" or "place" (one "name x y sub_tile layer" line per block)
    """
    if format == "json":
        _export_json(registry, output_path, report)
    elif format == "place":
        _export_place(registry, output_path)
    else:
        raise ValueError(f"Unknown format: {format}")


def _export_json(registry: BlockLocRegistry, output_path, report: Optional[PlacementReport]) -> None:
    grid = registry.grid
    data = {
        "version": "1.0",
        "generator": "fpga_place",
        "grid": {"width": grid.width, "height": grid.height, "num_layers": grid.num_layers},
        "blocks": []
    }
    for block in registry.netlist.blocks:
        loc = registry.loc_of(block.block_id)
        data["blocks"].append({
            "id": block.block_id,
            "name": block.name,
            "type": block.block_type,
            "x": loc.x,
            "y": loc.y,
            "sub_tile": loc.sub_tile,
            "layer": loc.layer
        })
    if report is not None:
        summary = report.to_dict()
        summary.pop("block_locs")
        data["report"] = summary

    with open(output_path, 'w') as f:
        json.dump(data, f, indent=2)


def _export_place(registry: BlockLocRegistry, output_path) -> None:
    lines = []
    for block in registry.netlist.blocks:
        loc = registry.loc_of(block.block_id)
        lines.append(f"{block.name}\t{loc.x}\t{loc.y}\t{loc.sub_tile}\t{loc.layer}\t#{block.block_id}")

    with open(output_path, 'w') as f:
        f.write('\n'.join(lines) + '\n')


def import_placement(path: Union[str, Path]) -> Dict[int, Location]:
    """Read block locations written by export_placement (JSON)."""
    with open(path, 'r') as f:
        data = json.load(f)
    return {
        b["id"]: Location(b["x"], b["y"], b.get("sub_tile", 0), b.get("layer", 0))
        for b in data["blocks"]
    }


def save_checkpoint(checkpoint: PlacementCheckpoint, path: Union[str, Path]) -> None:
    with open(path, 'w') as f:
        json.dump(checkpoint.to_dict(), f, indent=2)


def load_checkpoint(path: Union[str, Path]) -> PlacementCheckpoint:
    with open(path, 'r') as f:
        return PlacementCheckpoint.from_dict(json.load(f))
