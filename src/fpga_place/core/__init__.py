"""Core placement data: device grid, netlist and block locations."""

from .grid import DeviceGrid, Location, TileType
from .netlist import Block, Net, Netlist, MacroMember, PlacementMacro
from .placement import BlockLocRegistry, BlocksToBeMoved, MovedBlock
from .initial_placement import initial_placement

__all__ = [
    "DeviceGrid",
    "Location",
    "TileType",
    "Block",
    "Net",
    "Netlist",
    "MacroMember",
    "PlacementMacro",
    "BlockLocRegistry",
    "BlocksToBeMoved",
    "MovedBlock",
    "initial_placement"
]
