"""External collaborators: protocols plus in-memory and SQL implementations."""

from listing_spine.collaborators.protocols import Services

__all__ = ["Services"]
