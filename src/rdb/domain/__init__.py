"""Domain contracts for persistable values."""

from .entity import Entity, EntityMixin

__all__ = ["Entity", "EntityMixin"]
