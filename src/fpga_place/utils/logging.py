"""Logging setup for placement runs."""

import logging
import sys
from typing import Optional

PLACEMENT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    anneal_level: Optional[int] = None
):
    """Setup logging configuration.

    Args:
        level: Logging level for the whole package
        log_file: Optional log file path (placement report is mirrored there)
        anneal_level: Optional separate level for the annealer, whose
            per-temperature lines dominate long runs
    """
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format=PLACEMENT_LOG_FORMAT,
        handlers=handlers,
        force=True
    )

    if anneal_level is not None:
        logging.getLogger("fpga_place.anneal").setLevel(anneal_level)
