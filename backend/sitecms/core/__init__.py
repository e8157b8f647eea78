"""Core module - foundational components."""

from sitecms.core.database import get_db_context
from sitecms.core.exceptions import AppException
from sitecms.core.logging import get_logger

__all__ = ["get_db_context", "AppException", "get_logger"]
