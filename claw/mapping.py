"""Descriptions of Struct fields used to encode and decode them."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional


class MappingError(ValueError):
    """Raised when a mapping is inconsistent."""


class FieldType(enum.IntEnum):
    """The type of a Struct field."""

    UNKNOWN = 0
    BOOL = 1
    INT8 = 2
    INT16 = 3
    INT32 = 4
    INT64 = 5
    UINT8 = 6
    UINT16 = 7
    UINT32 = 8
    UINT64 = 9
    FLOAT32 = 10
    FLOAT64 = 11
    STRING = 12
    BYTES = 13
    STRUCT = 14
    LIST_BOOLS = 41
    LIST_INT8 = 42
    LIST_INT16 = 43
    LIST_INT32 = 44
    LIST_INT64 = 45
    LIST_UINT8 = 46
    LIST_UINT16 = 47
    LIST_UINT32 = 48
    LIST_UINT64 = 49
    LIST_FLOAT32 = 50
    LIST_FLOAT64 = 51
    LIST_BYTES = 52
    LIST_STRINGS = 53
    LIST_STRUCTS = 54

    def __str__(self) -> str:
        return self.name

    @property
    def is_list(self) -> bool:
        return self >= FieldType.LIST_BOOLS

    @property
    def is_number(self) -> bool:
        return self in NUMBER_TYPES

    @property
    def is_numeric_list(self) -> bool:
        return self in NUMERIC_LIST_TYPES


NUMBER_TYPES = frozenset(
    {
        FieldType.INT8,
        FieldType.INT16,
        FieldType.INT32,
        FieldType.INT64,
        FieldType.UINT8,
        FieldType.UINT16,
        FieldType.UINT32,
        FieldType.UINT64,
        FieldType.FLOAT32,
        FieldType.FLOAT64,
    }
)

NUMERIC_LIST_TYPES = frozenset(
    {
        FieldType.LIST_INT8,
        FieldType.LIST_INT16,
        FieldType.LIST_INT32,
        FieldType.LIST_INT64,
        FieldType.LIST_UINT8,
        FieldType.LIST_UINT16,
        FieldType.LIST_UINT32,
        FieldType.LIST_UINT64,
        FieldType.LIST_FLOAT32,
        FieldType.LIST_FLOAT64,
    }
)


@dataclass
class FieldDescr:
    """Describes one field of a Struct."""

    name: str = ""
    type: FieldType = FieldType.UNKNOWN
    field_num: int = 0
    struct_name: str = ""
    is_enum: bool = False
    enum_group: str = ""
    package: str = ""
    full_path: str = ""
    self_referential: bool = False
    mapping: Optional["Map"] = None

    def validate(self) -> None:
        """Raise MappingError if a Struct field lacks its mapping."""
        if self.type in (FieldType.LIST_STRUCTS, FieldType.STRUCT):
            if self.mapping is None:
                raise MappingError(
                    f".{self.name}: type was {self.type}, but had Mapping == nil"
                )
            try:
                self.mapping.validate()
            except MappingError as exc:
                raise MappingError(f".{self.name}{exc}") from exc


@dataclass
class Map:
    """Field descriptions for all fields of a Struct, indexed by field number."""

    name: str = ""
    pkg: str = ""
    path: str = ""
    fields: list[FieldDescr] = field(default_factory=list)

    def validate(self) -> None:
        """Validate every field, raising MappingError on the first problem."""
        for entry in self.fields:
            entry.validate()

    def by_name(self, name: str) -> FieldDescr:
        """Return the field called ``name``; raise KeyError if there is none."""
        for entry in self.fields:
            if entry.name == name:
                return entry
        raise KeyError(f"could not find name {name!r}")