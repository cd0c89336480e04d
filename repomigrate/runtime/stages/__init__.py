"""Per-module pipeline stages."""

from .base import CANCELLED_REASON, BaseStage
from .extract import ExtractStage
from .publish import PublishStage
from .validate import ValidateStage

__all__ = ["CANCELLED_REASON", "BaseStage", "ExtractStage", "PublishStage", "ValidateStage"]
