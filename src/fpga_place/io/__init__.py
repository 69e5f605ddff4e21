"""I/O module: design files, placement export and checkpoints."""

from .design_io import Design, read_design, write_design
from .placement_io import export_placement, import_placement, save_checkpoint, load_checkpoint

__all__ = [
    "Design",
    "read_design",
    "write_design",
    "export_placement",
    "import_placement",
    "save_checkpoint",
    "load_checkpoint"
]
