"""Tests for netlist, nets and macros."""

import pytest

from fpga_place.core.grid import Location
from fpga_place.core.netlist import Block, MacroMember, Net, Netlist, PlacementMacro


class TestNet:
    """Tests for Net."""

    def test_driver_and_sinks(self):
        net = Net(0, (3, 1, 2))
        assert net.driver == 3
        assert net.sinks == (1, 2)

    def test_invalid(self):
        with pytest.raises(ValueError):
            Net(0, ())
        with pytest.raises(ValueError):
            Net(0, (0, 1), weight=0.0)


class TestNetlist:
    """Tests for Netlist lookups."""

    def test_dense_ids_required(self):
        with pytest.raises(ValueError):
            Netlist([Block(1, "a", "clb")], [])

    def test_unknown_pin(self):
        with pytest.raises(ValueError):
            Netlist([Block(0, "a", "clb")], [Net(0, (0, 5))])

    def test_ignored_nets(self, netlist_factory):
        netlist = netlist_factory(
            4,
            [(0, 1), (2, 2), (0, 1)],
            fixed={0: Location(0, 0), 1: Location(1, 0)}
        )
        assert netlist.net_is_ignored_for_placement(0)   # all fixed
        assert netlist.net_is_ignored_for_placement(1)   # one distinct block
        global_net = Netlist(
            [Block(0, "a", "clb"), Block(1, "b", "clb")],
            [Net(0, (0, 1), is_global=True)]
        )
        assert global_net.net_is_ignored_for_placement(0)
        assert global_net.placement_nets() == []

    def test_fixed_to_moveable_net_counts(self, netlist_factory):
        netlist = netlist_factory(2, [(0, 1)], fixed={0: Location(0, 0)})
        assert not netlist.net_is_ignored_for_placement(0)

    def test_duplicate_pins_collapse(self, netlist_factory):
        netlist = netlist_factory(3, [(0, 1, 1, 2, 0)])
        assert netlist.net_blocks(0) == (0, 1, 2)
        assert netlist.block_nets(1) == [(0, 1)]

    def test_connections(self, island_netlist):
        conns = island_netlist.connections()
        # Global clock net contributes no connections.
        clk = len(island_netlist.nets) - 1
        assert all(net_id != clk for net_id, _ in conns)
        assert (3, 3) in conns
        assert island_netlist.connection_blocks((3, 3)) == (3, 10)

    def test_macro_lookup(self, island_netlist):
        macro = island_netlist.macro_of(17)
        assert macro is not None
        assert macro.head == 16
        assert island_netlist.macro_of(5) is None

    def test_block_in_two_macros(self):
        blocks = [Block(i, f"b{i}", "clb") for i in range(3)]
        macros = [
            PlacementMacro(0, (MacroMember(0, Location(0, 0)), MacroMember(1, Location(0, 1)))),
            PlacementMacro(1, (MacroMember(1, Location(0, 0)), MacroMember(2, Location(0, 1)))),
        ]
        with pytest.raises(ValueError):
            Netlist(blocks, [], macros)


class TestPlacementMacro:
    """Tests for PlacementMacro validation."""

    def test_head_offset_must_be_zero(self):
        with pytest.raises(ValueError):
            PlacementMacro(0, (MacroMember(0, Location(1, 0)), MacroMember(1, Location(0, 1))))

    def test_needs_two_members(self):
        with pytest.raises(ValueError):
            PlacementMacro(0, (MacroMember(0, Location(0, 0)),))
