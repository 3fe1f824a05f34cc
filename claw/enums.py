"""Descriptors for enumerated values and groups of them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Optional


@dataclass(frozen=True)
class EnumValue:
    """One enumerated value."""

    name: str
    number: int
    size: int = 8


@dataclass(frozen=True)
class EnumGroup:
    """A named set of enumerated values, all 8 or 16 bits in size."""

    name: str
    size: int = 8
    values: tuple[EnumValue, ...] = ()

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[EnumValue]:
        return iter(self.values)

    def get(self, index: int) -> EnumValue:
        """Return the value at ``index``; raise IndexError if out of range."""
        return self.values[index]

    def by_name(self, name: str) -> Optional[EnumValue]:
        """Return the value called ``name``, or None."""
        return next((v for v in self.values if v.name == name), None)

    def by_value(self, number: int) -> Optional[EnumValue]:
        """Return the value whose number is ``number``, or None."""
        return next((v for v in self.values if v.number == number), None)


@dataclass(frozen=True)
class EnumGroups:
    """The enum groups declared in a package."""

    groups: tuple[EnumGroup, ...] = ()
    _lookup: dict = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "groups", tuple(self.groups))
        object.__setattr__(self, "_lookup", {g.name: g for g in self.groups})

    def __len__(self) -> int:
        return len(self.groups)

    def __iter__(self) -> Iterator[EnumGroup]:
        return iter(self.groups)

    def get(self, index: int) -> EnumGroup:
        """Return the group at ``index``; raise IndexError if out of range."""
        return self.groups[index]

    def by_name(self, name: str) -> Optional[EnumGroup]:
        """Return the group called ``name``, or None."""
        return self._lookup.get(name)