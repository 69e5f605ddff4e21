"""JSON design format: device grid, netlist, macros and optional NoC.

Layout of a design file:

    {
      "grid": {"width": 10, "height": 10, "num_layers": 1,
               "tile_types": [{"name": "clb", "capacity": 1, "compatible_blocks": ["clb"]}],
               "layout": [[["clb", ...], ...]]},          # [layer][x][y]
      "blocks": [{"id": 0, "name": "in0", "type": "io", "fixed": [0, 3, 0, 0], "sequential": true}],
      "nets": [{"id": 0, "name": "n0", "pins": [0, 4, 5], "weight": 1.0, "global": false}],
      "macros": [{"id": 0, "members": [{"block": 7, "offset": [0, 0, 0, 0]}, ...]}],
      "noc": {"router_latency": 1e-9,
              "routers": [{"id": 0, "x": 2, "y": 2, "layer": 0, "mesh": [0, 0]}],
              "links": [{"src": 0, "dst": 1, "bandwidth": 1e9, "latency": 1e-9}],
              "flows": [{"id": 0, "src": 12, "dst": 13, "bandwidth": 2e8,
                         "max_latency": 1e-8, "priority": 1}]}
    }
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np

from ..core.grid import DeviceGrid, Location, TileType
from ..core.netlist import Block, MacroMember, Net, Netlist, PlacementMacro
from ..noc.topology import NocTopology, TrafficFlow


@dataclass
class Design:
    """Everything a placement run consumes besides its configuration."""
    grid: DeviceGrid
    netlist: Netlist
    noc_topology: Optional[NocTopology] = None
    traffic_flows: List[TrafficFlow] = field(default_factory=list)


def _loc(row) -> Optional[Location]:
    return None if row is None else Location.from_row(row)


def design_from_dict(data: Dict[str, Any]) -> Design:
    g = data["grid"]
    tile_types = {
        t["name"]: TileType(t["name"], t.get("capacity", 1), frozenset(t.get("compatible_blocks", ())))
        for t in g["tile_types"]
    }
    layout = np.array(g["layout"], dtype=object)
    grid = DeviceGrid(g["width"], g["height"], tile_types, layout, g.get("num_layers", 1))

    blocks = [
        Block(b["id"], b.get("name", f"blk_{b['id']}"), b["type"], _loc(b.get("fixed")), b.get("sequential", False))
        for b in data["blocks"]
    ]
    nets = [
        Net(n["id"], tuple(n["pins"]), n.get("name", f"net_{n['id']}"), n.get("weight", 1.0), n.get("global", False))
        for n in data.get("nets", [])
    ]
    macros = [
        PlacementMacro(m["id"], tuple(MacroMember(mb["block"], Location.from_row(mb["offset"])) for mb in m["members"]))
        for m in data.get("macros", [])
    ]
    design = Design(grid=grid, netlist=Netlist(blocks, nets, macros))

    noc = data.get("noc")
    if noc:
        topology = NocTopology(router_latency=noc.get("router_latency", 1.0e-9))
        for r in noc["routers"]:
            mesh = tuple(r["mesh"]) if r.get("mesh") is not None else None
            topology.add_router(r["id"], r["x"], r["y"], r.get("layer", 0), mesh=mesh)
        for link in noc["links"]:
            topology.add_link(link["src"], link["dst"], link["bandwidth"], link.get("latency", 1.0e-9))
        design.noc_topology = topology
        design.traffic_flows = [
            TrafficFlow(f["id"], f["src"], f["dst"], f["bandwidth"],
                        f.get("max_latency", float("inf")), f.get("priority", 1.0))
            for f in noc.get("flows", [])
        ]
    return design


def design_to_dict(design: Design) -> Dict[str, Any]:
    grid, netlist = design.grid, design.netlist
    data: Dict[str, Any] = {
        "grid": {
            "width": grid.width,
            "height": grid.height,
            "num_layers": grid.num_layers,
            "tile_types": [
                {"name": t.name, "capacity": t.capacity, "compatible_blocks": sorted(t.compatible_blocks)}
                for t in grid.tile_types.values()
            ],
            "layout": grid.layout.tolist()
        },
        "blocks": [
            {
                "id": b.block_id,
                "name": b.name,
                "type": b.block_type,
                "fixed": list(b.fixed_loc.as_tuple()) if b.fixed_loc is not None else None,
                "sequential": b.is_sequential
            }
            for b in netlist.blocks
        ],
        "nets": [
            {"id": n.net_id, "name": n.name, "pins": list(n.pins), "weight": n.weight, "global": n.is_global}
            for n in netlist.nets
        ],
        "macros": [
            {
                "id": m.macro_id,
                "members": [{"block": mb.block_id, "offset": list(mb.offset.as_tuple())} for mb in m.members]
            }
            for m in netlist.macros
        ]
    }
    topology = design.noc_topology
    if topology is not None:
        data["noc"] = {
            "router_latency": topology.router_latency,
            "routers": [
                {"id": r, "x": d["x"], "y": d["y"], "layer": d["layer"],
                 "mesh": list(d["mesh"]) if d["mesh"] is not None else None}
                for r, d in topology.graph.nodes(data=True)
            ],
            "links": [
                {"src": u, "dst": v, "bandwidth": d["bandwidth"], "latency": d["latency"]}
                for u, v, d in topology.graph.edges(data=True)
            ],
            "flows": [
                {"id": f.flow_id, "src": f.src_block, "dst": f.dst_block, "bandwidth": f.bandwidth,
                 "max_latency": f.max_latency, "priority": f.priority}
                for f in design.traffic_flows
            ]
        }
    return data


def read_design(path: Union[str, Path]) -> Design:
    """Read a design JSON file.

    Args:
        path: Design file path

    Returns:
        Grid, netlist and NoC description
    """
    with open(path, 'r') as f:
        return design_from_dict(json.load(f))


def write_design(design: Design, path: Union[str, Path]) -> None:
    with open(path, 'w') as f:
        json.dump(design_to_dict(design), f, indent=2)
