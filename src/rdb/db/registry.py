"""Registry of entity types awaiting a table mapping."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from ..utils.naming import to_snake_case


@dataclass(frozen=True, slots=True)
class Registration:
    """How one entity type maps to a table."""

    entity_type: type
    table_name: str
    key: str = "id"


class Registry:
    """Ordered collection of :class:`Registration` entries keyed by type.

    A repository snapshots the registry when it is constructed, so every
    ``register`` call must happen before the repository is built.
    """

    def __init__(self) -> None:
        self._entries: dict[type, Registration] = {}

    def register(
        self,
        entity_type: type,
        *,
        table_name: str | None = None,
        key: str = "id",
    ) -> type:
        """Record ``entity_type``; the type is returned so this works as a decorator."""

        self._entries[entity_type] = Registration(
            entity_type=entity_type,
            table_name=table_name or to_snake_case(entity_type.__name__),
            key=key,
        )
        return entity_type

    def snapshot(self) -> tuple[Registration, ...]:
        return tuple(self._entries.values())

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._entries

    def __iter__(self) -> Iterator[Registration]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        return len(self._entries)


default_registry = Registry()


def register(entity_type: type, *, table_name: str | None = None, key: str = "id") -> type:
    """Register ``entity_type`` in the process-wide :data:`default_registry`."""

    return default_registry.register(entity_type, table_name=table_name, key=key)


__all__ = ["Registration", "Registry", "default_registry", "register"]
