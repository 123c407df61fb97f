"""Domain layer for the link harvester."""

from .documents import LinkDocument, ValidationError

__all__ = ["LinkDocument", "ValidationError"]
