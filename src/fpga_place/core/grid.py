"""FPGA device grid representation (multi-layer)."""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple
import numpy as np

EMPTY_TILE = "EMPTY"


@dataclass(frozen=True, order=True)
class Location:
    """A site on the device: tile coordinate, sub-tile slot and die layer.

    Also used for macro member offsets, so arithmetic is component-wise.
    """
    x: int
    y: int
    sub_tile: int = 0
    layer: int = 0

    def __add__(self, other: 'Location') -> 'Location':
        return Location(self.x + other.x, self.y + other.y,
                        self.sub_tile + other.sub_tile, self.layer + other.layer)

    def __sub__(self, other: 'Location') -> 'Location':
        return Location(self.x - other.x, self.y - other.y,
                        self.sub_tile - other.sub_tile, self.layer - other.layer)

    @classmethod
    def from_row(cls, row) -> 'Location':
        """Build from an (x, y, sub_tile, layer) row of a site array."""
        return cls(int(row[0]), int(row[1]), int(row[2]), int(row[3]))

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.sub_tile, self.layer)

    def __repr__(self) -> str:
        return f"Location(x={self.x}, y={self.y}, sub_tile={self.sub_tile}, layer={self.layer})"


@dataclass(frozen=True)
class TileType:
    """Physical tile type: how many blocks it holds and which block types fit."""
    name: str
    capacity: int = 1
    compatible_blocks: FrozenSet[str] = field(default_factory=frozenset)

    def is_compatible(self, block_type: str) -> bool:
        return block_type in self.compatible_blocks


class DeviceGrid:
    """Device grid of tiles, `num_layers` dies stacked on top of each other.

    Note: legality is per (location, block type). A site is legal for a
    block type when the location is in bounds, the sub-tile exists in the
    tile and the tile type accepts the block type.
    """

    def __init__(
        self,
        width: int,
        height: int,
        tile_types: Dict[str, TileType],
        layout: np.ndarray,
        num_layers: int = 1
    ):
        """Initialize grid.

        Args:
            width: Number of tile columns
            height: Number of tile rows
            tile_types: Tile type name -> TileType
            layout: Object array [num_layers, width, height] of tile type names
            num_layers: Number of stacked dies
        """
        if width <= 0 or height <= 0:
            raise ValueError("Grid dimensions must be positive")
        if num_layers <= 0:
            raise ValueError("Grid must have at least one layer")
        if layout.shape != (num_layers, width, height):
            raise ValueError(
                f"Layout shape {layout.shape} does not match grid "
                f"({num_layers}, {width}, {height})"
            )
        self.width = width
        self.height = height
        self.num_layers = num_layers
        self.tile_types = dict(tile_types)
        self.tile_types.setdefault(EMPTY_TILE, TileType(EMPTY_TILE, capacity=0))
        for name in np.unique(layout):
            if name not in self.tile_types:
                raise ValueError(f"Layout references unknown tile type '{name}'")
        self.layout = layout
        self._legal_sites: Dict[str, np.ndarray] = {}

    @classmethod
    def uniform(
        cls,
        width: int,
        height: int,
        tile: TileType,
        num_layers: int = 1
    ) -> 'DeviceGrid':
        """Grid where every tile has the same type."""
        layout = np.full((num_layers, width, height), tile.name, dtype=object)
        return cls(width, height, {tile.name: tile}, layout, num_layers)

    @classmethod
    def island_style(
        cls,
        width: int,
        height: int,
        clb: Optional[TileType] = None,
        io: Optional[TileType] = None,
        hard_columns: Optional[Dict[int, TileType]] = None,
        router_tiles: Optional[Iterable[Tuple[int, int]]] = None,
        router: Optional[TileType] = None,
        num_layers: int = 1
    ) -> 'DeviceGrid':
        """Classic island-style device.

        IO ring on the perimeter (corners empty), logic tiles in the core,
        optional full-height hard-block columns and optional NoC router tiles.
        """
        clb = clb or TileType("clb", capacity=1, compatible_blocks=frozenset({"clb"}))
        io = io or TileType("io", capacity=2, compatible_blocks=frozenset({"io"}))
        tile_types = {clb.name: clb, io.name: io}
        layout = np.full((num_layers, width, height), clb.name, dtype=object)

        layout[:, 0, :] = io.name
        layout[:, width - 1, :] = io.name
        layout[:, :, 0] = io.name
        layout[:, :, height - 1] = io.name
        for x, y in [(0, 0), (0, height - 1), (width - 1, 0), (width - 1, height - 1)]:
            layout[:, x, y] = EMPTY_TILE

        for column, tile in (hard_columns or {}).items():
            if not 0 < column < width - 1:
                raise ValueError(f"Hard-block column {column} outside the core")
            tile_types[tile.name] = tile
            layout[:, column, 1:height - 1] = tile.name

        if router_tiles:
            router = router or TileType(
                "noc_router", capacity=1, compatible_blocks=frozenset({"noc_router"})
            )
            tile_types[router.name] = router
            for x, y in router_tiles:
                layout[:, x, y] = router.name

        return cls(width, height, tile_types, layout, num_layers)

    def in_bounds(self, x: int, y: int, layer: int = 0) -> bool:
        """Check if (x, y, layer) is on the device."""
        return 0 <= x < self.width and 0 <= y < self.height and 0 <= layer < self.num_layers

    def tile_at(self, x: int, y: int, layer: int = 0) -> TileType:
        """Tile type at a coordinate (must be in bounds)."""
        return self.tile_types[self.layout[layer, x, y]]

    def is_legal(self, loc: Location, block_type: str) -> bool:
        """Check if a block of `block_type` may occupy `loc`."""
        if not self.in_bounds(loc.x, loc.y, loc.layer):
            return False
        tile = self.tile_at(loc.x, loc.y, loc.layer)
        return 0 <= loc.sub_tile < tile.capacity and tile.is_compatible(block_type)

    def legal_sites(self, block_type: str) -> np.ndarray:
        """All legal sites for a block type as int array [N, 4] of (x, y, sub_tile, layer).

        Computed once per block type and cached.
        """
        sites = self._legal_sites.get(block_type)
        if sites is None:
            rows: List[Tuple[int, int, int, int]] = []
            for layer in range(self.num_layers):
                for x in range(self.width):
                    for y in range(self.height):
                        tile = self.tile_at(x, y, layer)
                        if tile.is_compatible(block_type):
                            rows.extend((x, y, sub, layer) for sub in range(tile.capacity))
            sites = np.array(rows, dtype=np.int64).reshape(-1, 4)
            self._legal_sites[block_type] = sites
        return sites

    def sites_in_window(
        self,
        block_type: str,
        center_x: int,
        center_y: int,
        rlim: int,
        layer: Optional[int] = None,
        exclude_layer: Optional[int] = None
    ) -> np.ndarray:
        """Legal sites within Chebyshev distance `rlim` of (center_x, center_y).

        Args:
            block_type: Block type that must fit the site
            center_x: Window centre column
            center_y: Window centre row
            rlim: Range limit (inclusive)
            layer: Restrict to this layer
            exclude_layer: Drop sites on this layer

        Returns:
            Int array [M, 4] of candidate sites
        """
        sites = self.legal_sites(block_type)
        mask = (np.abs(sites[:, 0] - center_x) <= rlim) & (np.abs(sites[:, 1] - center_y) <= rlim)
        if layer is not None:
            mask &= sites[:, 3] == layer
        if exclude_layer is not None:
            mask &= sites[:, 3] != exclude_layer
        return sites[mask]

    def get_size(self) -> Tuple[int, int]:
        """Get grid size as (width, height)."""
        return (self.width, self.height)

    def __repr__(self) -> str:
        return f"DeviceGrid(width={self.width}, height={self.height}, num_layers={self.num_layers})"
