"""
Header and query-parameter multimaps.

Headers: case-insensitive names, multiple values per name, insertion order
of names preserved. Duplicate values for the same name are dropped.

QueryParams: ordered (key, value) pairs; keys are case-sensitive and may
repeat. A None value renders as an empty value ("uploads=").
"""

from __future__ import annotations

from typing import Iterable, Iterator, Mapping, Optional, Union

from s3wire.http.encoding import encode

HeaderInput = Union["Headers", Mapping[str, str], Iterable[tuple[str, str]], None]


class Headers:
    """Case-insensitive multimap of HTTP header values."""

    __slots__ = ("_items",)

    def __init__(self, initial: HeaderInput = None) -> None:
        # lower-cased name -> (original name, values)
        self._items: dict[str, tuple[str, list[str]]] = {}
        if initial is not None:
            self.extend(initial)

    def add(self, name: str, value: str) -> None:
        key = name.lower()
        entry = self._items.get(key)
        if entry is None:
            self._items[key] = (name, [value])
        elif value not in entry[1]:
            entry[1].append(value)

    def set(self, name: str, value: str) -> None:
        """Replace every value of name."""
        self._items[name.lower()] = (name, [value])

    def setdefault(self, name: str, value: str) -> None:
        if name.lower() not in self._items:
            self.set(name, value)

    def remove(self, name: str) -> None:
        self._items.pop(name.lower(), None)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of name."""
        entry = self._items.get(name.lower())
        return entry[1][0] if entry else default

    def get_all(self, name: str) -> list[str]:
        entry = self._items.get(name.lower())
        return list(entry[1]) if entry else []

    def extend(self, other: HeaderInput) -> None:
        if other is None:
            return
        if isinstance(other, Headers):
            pairs: Iterable[tuple[str, str]] = other.multi_items()
        elif isinstance(other, Mapping):
            pairs = other.items()
        else:
            pairs = other
        for name, value in pairs:
            self.add(name, value)

    def multi_items(self) -> Iterator[tuple[str, str]]:
        """(name, value) pairs using the first-seen spelling of each name."""
        for name, values in self._items.values():
            for value in values:
                yield name, value

    def copy(self) -> Headers:
        return Headers(self)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._items.values())

    def __repr__(self) -> str:
        return f"Headers({list(self.multi_items())!r})"


class QueryParams:
    """Ordered query-parameter multimap."""

    __slots__ = ("_pairs",)

    def __init__(
        self,
        initial: Union[Mapping[str, Optional[str]], Iterable[tuple[str, Optional[str]]], None] = None,
    ) -> None:
        self._pairs: list[tuple[str, Optional[str]]] = []
        if initial is not None:
            items = initial.items() if isinstance(initial, Mapping) else initial
            for key, value in items:
                self.add(key, value)

    def add(self, key: str, value: Optional[str] = None) -> None:
        self._pairs.append((key, value))

    def set(self, key: str, value: Optional[str] = None) -> None:
        self._pairs = [(k, v) for k, v in self._pairs if k != key]
        self._pairs.append((key, value))

    def get(self, key: str) -> Optional[str]:
        for k, v in self._pairs:
            if k == key:
                return v
        return None

    def extend(self, other: Optional[QueryParams]) -> None:
        if other is not None:
            self._pairs.extend(other._pairs)

    def encoded(self) -> str:
        """Percent-encoded query string, in insertion order."""
        return "&".join(f"{encode(k)}={encode(v)}" for k, v in self._pairs)

    def copy(self) -> QueryParams:
        return QueryParams(self._pairs)

    def __contains__(self, key: object) -> bool:
        return any(k == key for k, _ in self._pairs)

    def __iter__(self) -> Iterator[tuple[str, Optional[str]]]:
        return iter(self._pairs)

    def __len__(self) -> int:
        return len(self._pairs)

    def __bool__(self) -> bool:
        return bool(self._pairs)

    def __repr__(self) -> str:
        return f"QueryParams({self._pairs!r})"


__all__ = ["Headers", "QueryParams"]
