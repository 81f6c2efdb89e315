from .id_generator import generate_id
from .logging import get_logger, setup_logging
from .time_utils import now_iso

__all__ = [
    "generate_id",
    "get_logger",
    "setup_logging",
    "now_iso",
]
