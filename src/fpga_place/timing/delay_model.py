"""Placement delay models: point-to-point delay estimate between two sites."""

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from ..core.grid import DeviceGrid, Location


class PlaceDelayModel(ABC):
    """Base class for placement delay models."""

    @abstractmethod
    def delay(self, from_loc: Location, to_loc: Location) -> float:
        """Estimated delay (seconds) of a connection between two sites."""
        pass


class ManhattanDelayModel(PlaceDelayModel):
    """Delay linear in Manhattan distance plus a per-layer-crossing penalty."""

    def __init__(
        self,
        base_delay: float = 1.0e-10,
        delay_per_tile_x: float = 5.0e-11,
        delay_per_tile_y: float = 5.0e-11,
        inter_layer_delay: float = 2.0e-10
    ):
        self.base_delay = base_delay
        self.delay_per_tile_x = delay_per_tile_x
        self.delay_per_tile_y = delay_per_tile_y
        self.inter_layer_delay = inter_layer_delay

    def delay(self, from_loc: Location, to_loc: Location) -> float:
        return (
            self.base_delay
            + self.delay_per_tile_x * abs(to_loc.x - from_loc.x)
            + self.delay_per_tile_y * abs(to_loc.y - from_loc.y)
            + self.inter_layer_delay * abs(to_loc.layer - from_loc.layer)
        )


class DeltaDelayModel(PlaceDelayModel):
    """Lookup table indexed by (|dx|, |dy|), one table per layer distance.

    Tables are usually profiled from the routing architecture; `from_model`
    tabulates any other model instead.
    """

    def __init__(self, table: np.ndarray):
        """Initialize model.

        Args:
            table: Delay table [num_layers, width, height]
        """
        if table.ndim != 3:
            raise ValueError("Delta delay table must be [num_layers, width, height]")
        if not np.all(np.isfinite(table)):
            raise ValueError("Delta delay table has non-finite entries")
        self.table = table

    @classmethod
    def from_model(cls, grid: DeviceGrid, model: Optional[PlaceDelayModel] = None) -> 'DeltaDelayModel':
        model = model or ManhattanDelayModel()
        origin = Location(0, 0)
        table = np.zeros((grid.num_layers, grid.width, grid.height))
        for dl in range(grid.num_layers):
            for dx in range(grid.width):
                for dy in range(grid.height):
                    table[dl, dx, dy] = model.delay(origin, Location(dx, dy, 0, dl))
        return cls(table)

    def delay(self, from_loc: Location, to_loc: Location) -> float:
        dl = min(abs(to_loc.layer - from_loc.layer), self.table.shape[0] - 1)
        dx = min(abs(to_loc.x - from_loc.x), self.table.shape[1] - 1)
        dy = min(abs(to_loc.y - from_loc.y), self.table.shape[2] - 1)
        return float(self.table[dl, dx, dy])
