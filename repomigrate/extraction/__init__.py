"""Extraction of modules into standalone repositories."""

from .engine import DESCRIPTOR_NAME, ExtractionEngine

__all__ = ["DESCRIPTOR_NAME", "ExtractionEngine"]
