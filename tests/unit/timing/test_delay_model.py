"""Tests for placement delay models."""

import numpy as np
import pytest

from fpga_place.core.grid import Location
from fpga_place.timing.delay_model import DeltaDelayModel, ManhattanDelayModel


class TestManhattanDelayModel:
    def test_linear_in_distance(self):
        model = ManhattanDelayModel(base_delay=1.0, delay_per_tile_x=2.0,
                                    delay_per_tile_y=3.0, inter_layer_delay=10.0)
        assert model.delay(Location(1, 1), Location(1, 1)) == pytest.approx(1.0)
        assert model.delay(Location(4, 0), Location(1, 2)) == pytest.approx(1.0 + 6.0 + 6.0)
        assert model.delay(Location(0, 0, 0, 0), Location(0, 0, 0, 1)) == pytest.approx(11.0)


class TestDeltaDelayModel:
    def test_from_model_matches(self, clb_grid):
        base = ManhattanDelayModel()
        table_model = DeltaDelayModel.from_model(clb_grid, base)
        a, b = Location(5, 1), Location(2, 4)
        assert table_model.delay(a, b) == pytest.approx(base.delay(a, b))
        assert table_model.delay(b, a) == pytest.approx(base.delay(a, b))

    def test_distance_clamped_to_table(self):
        model = DeltaDelayModel(np.arange(4, dtype=float).reshape(1, 2, 2))
        assert model.delay(Location(0, 0), Location(9, 9)) == pytest.approx(3.0)

    def test_rejects_bad_table(self):
        with pytest.raises(ValueError):
            DeltaDelayModel(np.zeros((2, 2)))
        with pytest.raises(ValueError):
            DeltaDelayModel(np.full((1, 2, 2), np.inf))
