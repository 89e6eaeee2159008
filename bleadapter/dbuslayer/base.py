"""Shared plumbing for the typed BlueZ object snapshots.

Each snapshot pairs an object path with the property bag of one interface,
taken from the :class:`~bleadapter.dbuslayer.manager.ObjectCache` at the time
of the lookup.  Accessors never go back to the bus; method calls do, through
the cache's transport and its call deadline.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List

if TYPE_CHECKING:  # pragma: no cover
    from bleadapter.dbuslayer.manager import ObjectCache

__all__ = ["ObjectPath", "BluezObject"]


class ObjectPath(str):
    """Marks a string argument that must travel as a D-Bus object path."""


class BluezObject:
    """Path + property snapshot for one BlueZ interface."""

    interface: str = ""

    def __init__(self, cache: "ObjectCache", path: str, properties: Dict[str, Any]):
        self._cache = cache
        self.path = path
        self.properties = dict(properties or {})

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.path!r})"

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, BluezObject)
            and type(other) is type(self)
            and other.path == self.path
        )

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.path))

    # ------------------------------------------------------------------
    # Property helpers
    # ------------------------------------------------------------------
    def _str(self, name: str) -> str:
        value = self.properties.get(name)
        return str(value) if value is not None else ""

    def _int(self, name: str, default: int = 0) -> int:
        value = self.properties.get(name)
        return int(value) if value is not None else default

    def _bool(self, name: str) -> bool:
        return bool(self.properties.get(name, False))

    def _list(self, name: str) -> List[str]:
        return [str(v) for v in self.properties.get(name) or []]

    def _bytes(self, name: str) -> bytes:
        value = self.properties.get(name)
        return bytes(value) if value is not None else b""

    def get_uuids(self) -> List[str]:
        return self._list("UUIDs")

    # ------------------------------------------------------------------
    # Bus access
    # ------------------------------------------------------------------
    def call(self, method: str, *args: Any) -> Any:
        """Invoke *method* on this object's interface with the cache deadline."""
        return self._cache.call_method(self.path, self.interface, method, *args)

    def describe(self) -> str:
        lines = [f"{self.path} [{self.interface}]"]
        for key in sorted(self.properties):
            lines.append(f"\t{key}: {self.properties[key]!r}")
        return "\n".join(lines)
