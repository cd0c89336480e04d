"""Publication readiness validation."""

from .validator import ReadinessValidator

__all__ = ["ReadinessValidator"]
