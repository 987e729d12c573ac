"""Entity contract shared by every persistable type."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Entity(Protocol):
    """A value that carries a string identifier."""

    def get_id(self) -> str: ...

    def set_id(self, entity_id: str) -> None: ...


class EntityMixin:
    """Implements :class:`Entity` over an ``id`` attribute.

    Combine with a dataclass that declares ``id: str = ""``.
    """

    id: str

    def get_id(self) -> str:
        return self.id

    def set_id(self, entity_id: str) -> None:
        self.id = entity_id


__all__ = ["Entity", "EntityMixin"]
