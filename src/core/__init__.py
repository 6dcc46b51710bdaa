"""Infrastructure shared by the launcher: configuration, paths, logging, tool lookup."""

from .config import AppConfig, load_app_config  # noqa: F401
from .logging import configure_logging, get_logger  # noqa: F401
