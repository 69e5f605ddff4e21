"""Clustered netlist representation: blocks, nets and placement macros."""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .grid import Location

Connection = Tuple[int, int]  # (net_id, sink index into Netlist.net_blocks(net_id))


@dataclass(frozen=True)
class Block:
    """A placeable block (cluster, IO, hard block, NoC router)."""
    block_id: int
    name: str
    block_type: str
    fixed_loc: Optional[Location] = None
    is_sequential: bool = False

    @property
    def is_fixed(self) -> bool:
        return self.fixed_loc is not None

    def __repr__(self) -> str:
        return f"Block(id={self.block_id}, {self.name}:{self.block_type})"


@dataclass(frozen=True)
class Net:
    """A net: ordered block pins, driver first."""
    net_id: int
    pins: Tuple[int, ...]
    name: str = ""
    weight: float = 1.0
    is_global: bool = False

    def __post_init__(self):
        """Validate net has at least one pin."""
        if len(self.pins) < 1:
            raise ValueError(f"Net {self.net_id} must have at least 1 pin")
        if self.weight <= 0:
            raise ValueError(f"Net {self.net_id} weight must be positive")
        object.__setattr__(self, "pins", tuple(self.pins))

    @property
    def driver(self) -> int:
        """Driver block (first pin)."""
        return self.pins[0]

    @property
    def sinks(self) -> Tuple[int, ...]:
        """Sink blocks (all pins except driver)."""
        return self.pins[1:]

    def __repr__(self) -> str:
        return f"Net(id={self.net_id}, pins={len(self.pins)})"


@dataclass(frozen=True)
class MacroMember:
    block_id: int
    offset: Location


@dataclass(frozen=True)
class PlacementMacro:
    """Rigid group of blocks; member 0 is the head and has a zero offset."""
    macro_id: int
    members: Tuple[MacroMember, ...]

    def __post_init__(self):
        if len(self.members) < 2:
            raise ValueError(f"Macro {self.macro_id} needs at least 2 members")
        if self.members[0].offset != Location(0, 0, 0, 0):
            raise ValueError(f"Macro {self.macro_id} head must have zero offset")
        object.__setattr__(self, "members", tuple(self.members))

    @property
    def head(self) -> int:
        return self.members[0].block_id

    def __len__(self) -> int:
        return len(self.members)


class Netlist:
    """Blocks, nets and macros with the lookups placement needs.

    Block ids and net ids must be dense (0..N-1) so they can index arrays.
    """

    def __init__(
        self,
        blocks: Sequence[Block],
        nets: Sequence[Net],
        macros: Iterable[PlacementMacro] = ()
    ):
        self.blocks: List[Block] = list(blocks)
        self.nets: List[Net] = list(nets)
        self.macros: List[PlacementMacro] = list(macros)

        if not self.blocks:
            raise ValueError("Netlist must contain at least one block")
        for i, block in enumerate(self.blocks):
            if block.block_id != i:
                raise ValueError(f"Block ids must be dense, got {block.block_id} at index {i}")
        for i, net in enumerate(self.nets):
            if net.net_id != i:
                raise ValueError(f"Net ids must be dense, got {net.net_id} at index {i}")
            for pin in net.pins:
                if not 0 <= pin < len(self.blocks):
                    raise ValueError(f"Net {net.net_id} references unknown block {pin}")

        self._macro_of_block: Dict[int, int] = {}
        for macro_index, macro in enumerate(self.macros):
            if macro.macro_id != macro_index:
                raise ValueError(f"Macro ids must be dense, got {macro.macro_id}")
            for member in macro.members:
                if member.block_id in self._macro_of_block:
                    raise ValueError(f"Block {member.block_id} belongs to more than one macro")
                self._macro_of_block[member.block_id] = macro_index

        # Unique blocks per net, driver first; duplicate pins on one block collapse.
        self._net_blocks: List[Tuple[int, ...]] = [
            tuple(dict.fromkeys(net.pins)) for net in self.nets
        ]
        self._block_nets: List[List[Tuple[int, int]]] = [[] for _ in self.blocks]
        for net_id, net_blocks in enumerate(self._net_blocks):
            for index, block_id in enumerate(net_blocks):
                self._block_nets[block_id].append((net_id, index))

        self._ignored = [self._compute_ignored(net_id) for net_id in range(len(self.nets))]

    def _compute_ignored(self, net_id: int) -> bool:
        net = self.nets[net_id]
        net_blocks = self._net_blocks[net_id]
        if net.is_global or len(net_blocks) < 2:
            return True
        return all(self.blocks[b].is_fixed for b in net_blocks)

    def net_is_ignored_for_placement(self, net_id: int) -> bool:
        """Global nets, nets with < 2 distinct blocks and all-fixed nets carry no cost."""
        return self._ignored[net_id]

    def net_blocks(self, net_id: int) -> Tuple[int, ...]:
        """Distinct blocks on a net, driver first."""
        return self._net_blocks[net_id]

    def block_nets(self, block_id: int) -> List[Tuple[int, int]]:
        """(net_id, pin index) for every net the block is on."""
        return self._block_nets[block_id]

    def placement_nets(self) -> List[int]:
        """Ids of nets that contribute to placement cost."""
        return [net_id for net_id, ignored in enumerate(self._ignored) if not ignored]

    def connections(self) -> List[Connection]:
        """Driver -> sink connections of every non-ignored net."""
        conns = []
        for net_id in self.placement_nets():
            conns.extend((net_id, sink) for sink in range(1, len(self._net_blocks[net_id])))
        return conns

    def connection_blocks(self, conn: Connection) -> Tuple[int, int]:
        """(driver block, sink block) of a connection."""
        net_id, sink = conn
        net_blocks = self._net_blocks[net_id]
        return net_blocks[0], net_blocks[sink]

    def macro_of(self, block_id: int) -> Optional[PlacementMacro]:
        """Macro containing the block, or None."""
        macro_index = self._macro_of_block.get(block_id)
        return None if macro_index is None else self.macros[macro_index]

    def moveable_blocks(self) -> List[int]:
        return [block.block_id for block in self.blocks if not block.is_fixed]

    def get_block(self, block_id: int) -> Block:
        return self.blocks[block_id]

    def __len__(self) -> int:
        return len(self.nets)

    def __repr__(self) -> str:
        return f"Netlist({len(self.blocks)} blocks, {len(self.nets)} nets, {len(self.macros)} macros)"
