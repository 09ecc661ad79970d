"""Feature-flag driven customer support workflow."""

from .config import FlagKeys, Settings
from .types import Inquiry, WorkflowResult

__all__ = ["FlagKeys", "Inquiry", "Settings", "WorkflowResult"]
