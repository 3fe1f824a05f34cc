"""Reflection over Claw Structs: package, Struct and field descriptors."""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field as dc_field
from typing import Any, Iterator, Optional

from claw.codec import Bools, BytesList, Numbers, Struct, StructList
from claw.enums import EnumGroup, EnumGroups
from claw.header import Header
from claw.mapping import NUMBER_TYPES, NUMERIC_LIST_TYPES, FieldType, Map
from claw.mapping import FieldDescr as MappingField
from claw.reflect_lists import (
    ListBools,
    ListBytes,
    ListNumbers,
    ListStrings,
    ListStructs,
)
from claw.registry import package_descr
from claw.values import (
    Value,
    value_of_bool,
    value_of_bytes,
    value_of_enum,
    value_of_list,
    value_of_number,
    value_of_string,
    value_of_struct,
)

_ENUM_TYPES = frozenset({FieldType.UINT8, FieldType.UINT16})
_WIDE_TYPES = frozenset({FieldType.INT64, FieldType.UINT64, FieldType.FLOAT64})


class FieldDescr:
    """Describes one field of a Struct for reflection."""

    def __init__(
        self,
        fd: MappingField,
        struct_descr: Optional["StructDescr"] = None,
        enum_group: Optional[EnumGroup] = None,
    ) -> None:
        self.fd = fd
        self.struct_descr = struct_descr
        self._enum_group = enum_group

    @property
    def name(self) -> str:
        return self.fd.name

    @property
    def type(self) -> FieldType:
        return FieldType(self.fd.type)

    @property
    def field_num(self) -> int:
        return self.fd.field_num

    @property
    def is_enum(self) -> bool:
        return self.fd.is_enum

    @property
    def enum_group(self) -> EnumGroup:
        """The field's enum group; TypeError if the field has none."""
        if self._enum_group is None:
            raise TypeError("called enum_group on field that was not an Enum")
        return self._enum_group

    def item_type(self) -> str:
        """Return the Struct name held by a list of Structs; TypeError otherwise."""
        if self.type != FieldType.LIST_STRUCTS:
            raise TypeError(
                f"cannot call item_type() on non list of Struct({self.type})"
            )
        if self.fd.mapping is None:
            raise TypeError(f"field {self.name!r} has no mapping for its items")
        return self.fd.mapping.name

    def __repr__(self) -> str:
        return f"FieldDescr({self.name!r}, {self.type}, {self.field_num})"


@dataclass(eq=False)
class StructDescr:
    """Describes a Struct type."""

    name: str
    pkg: str = ""
    path: str = ""
    fields: list = dc_field(default_factory=list)
    mapping: Optional[Map] = None

    def new(self) -> "StructImpl":
        """Return a new empty Struct of this type."""
        if self.mapping is None:
            raise ValueError(f"StructDescr {self.name!r} has no mapping")
        return StructImpl(Struct(self.mapping), self)

    def wrap(self, raw: Struct) -> "StructImpl":
        """Wrap an existing Struct of this type for reflection."""
        if self.mapping is not None and raw.mapping is not self.mapping and raw.mapping != self.mapping:
            raise ValueError(
                f"Struct {raw.mapping.name!r} is not of type {self.name!r}"
            )
        return StructImpl(raw, self)

    def field_descr_by_name(self, name: str) -> Optional[FieldDescr]:
        """Return the field called ``name`` or None.

        Raise ValueError for an empty name or one starting in lower case.
        """
        if not name or name[0].islower():
            raise ValueError(
                "cannot call field_descr_by_name if name is the empty string "
                "or starts with a lower case letter"
            )
        return next((fd for fd in self.fields if fd.name == name), None)

    def field_descr_by_index(self, index: int) -> FieldDescr:
        """Return the field at ``index``; raise IndexError if out of range."""
        return self.fields[index]


@dataclass(frozen=True)
class StructDescrs:
    """The Struct descriptors declared in a package."""

    descrs: tuple = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "descrs", tuple(self.descrs))

    def __len__(self) -> int:
        return len(self.descrs)

    def __iter__(self) -> Iterator[StructDescr]:
        return iter(self.descrs)

    def get(self, index: int) -> StructDescr:
        """Return the descriptor at ``index``; raise IndexError if out of range."""
        return self.descrs[index]

    def by_name(self, name: str) -> Optional[StructDescr]:
        """Return the descriptor of the Struct called ``name``, or None."""
        return next((d for d in self.descrs if d.name == name), None)


@dataclass
class PackageDescr:
    """Describes a Claw package and its contents."""

    name: str
    full_path: str
    imports: tuple = ()
    enums: EnumGroups = dc_field(default_factory=EnumGroups)
    structs: StructDescrs = dc_field(default_factory=StructDescrs)


def _descr_from_mapping(mapping: Map) -> StructDescr:
    return StructDescr(
        name=mapping.name,
        pkg=mapping.pkg,
        path=mapping.path,
        fields=[FieldDescr(fd) for fd in mapping.fields],
        mapping=mapping,
    )


def _registry_enum_group(fd: MappingField) -> EnumGroup:
    pkg = package_descr(fd.full_path)
    if pkg is None:
        raise LookupError(f"no package registered for {fd.full_path!r}")
    group_name = fd.enum_group.split(".")[-1]
    group = pkg.enums.by_name(group_name)
    if group is None:
        raise LookupError(
            f"EnumGroup {group_name!r} could not be found in {fd.full_path!r}"
        )
    return group


def _enum_group_for(fd: MappingField, descr: Optional[FieldDescr]) -> EnumGroup:
    if descr is not None and descr._enum_group is not None:
        return descr._enum_group
    return _registry_enum_group(fd)


def _sub_descr(descr: Optional[FieldDescr], mapping: Map) -> StructDescr:
    if descr is not None and descr.struct_descr is not None:
        return descr.struct_descr
    return _descr_from_mapping(mapping)


def _value_for(raw: Struct, field_num: int, descr: Optional[FieldDescr]) -> Optional[Value]:
    stored = raw.get_field(field_num)
    if stored is None:
        return None
    fd = raw.mapping.fields[field_num]
    ft = FieldType(fd.type)
    if ft == FieldType.BOOL:
        return value_of_bool(stored)
    if ft in NUMBER_TYPES:
        if fd.is_enum and ft in _ENUM_TYPES:
            return value_of_enum(stored, _enum_group_for(fd, descr), ft)
        return value_of_number(stored, ft)
    if ft == FieldType.BYTES:
        return value_of_bytes(stored)
    if ft == FieldType.STRING:
        return value_of_string(stored)
    if ft == FieldType.STRUCT:
        return value_of_struct(StructImpl(stored, _sub_descr(descr, stored.mapping)))
    if ft == FieldType.LIST_BOOLS:
        return value_of_list(ListBools(stored))
    if ft in NUMERIC_LIST_TYPES:
        return value_of_list(ListNumbers(stored))
    if ft == FieldType.LIST_BYTES:
        return value_of_list(ListBytes(stored))
    if ft == FieldType.LIST_STRINGS:
        return value_of_list(ListStrings(stored))
    if ft == FieldType.LIST_STRUCTS:
        return value_of_list(ListStructs(stored, _sub_descr(descr, stored.mapping)))
    raise TypeError(f"unsupported field type {ft}")


def get_value(raw: Struct, field_num: int) -> Optional[Value]:
    """Return a field of ``raw`` as a Value, or None if it is not set.

    Enum groups are looked up through the package registry.
    """
    return _value_for(raw, field_num, None)


def _raw_of(value: Value, descr: FieldDescr) -> Any:
    """Return the stored form of ``value`` for the field ``descr``."""
    if value.struct_value is not None:
        if descr.type != FieldType.STRUCT:
            raise TypeError(f"field {descr.name!r} is {descr.type}, not a Struct")
        held = value.struct_value
        return held.raw if isinstance(held, StructImpl) else held
    if value.list_value is not None:
        if value.list_value.field_type != descr.type:
            raise TypeError(
                f"field {descr.name!r} is {descr.type}, "
                f"list was {value.list_value.field_type}"
            )
        return value.list_value.raw
    if value.header is None:
        raise ValueError("cannot set a field to an empty Value")
    if value.field_type != descr.type:
        raise TypeError(
            f"field {descr.name!r} is {descr.type}, Value was {value.field_type}"
        )
    if value.is_enum:
        return value.header.final40 & 0xFFFF
    return value.to_python()


class StructImpl:
    """A concrete Struct value seen through its descriptor."""

    def __init__(self, raw: Struct, descr: StructDescr) -> None:
        self.raw = raw
        self.descr = descr

    def __repr__(self) -> str:
        return f"StructImpl({self.descr.name!r}, {self.raw!r})"

    def new(self) -> "StructImpl":
        """Return a new empty Struct of the same type."""
        return StructImpl(self.raw.new_from(), self.descr)

    def fields(self) -> Iterator[tuple[FieldDescr, Optional[Value]]]:
        """Yield every field descriptor with its Value, None when unset."""
        for descr in self.descr.fields:
            yield descr, self.get(descr)

    def get(self, descr: FieldDescr) -> Optional[Value]:
        """Return the field's Value, or None if it is not set."""
        return _value_for(self.raw, descr.field_num, descr)

    def has(self, descr: FieldDescr) -> bool:
        """Report whether the field is set."""
        return self.raw.is_set(descr.field_num)

    def clear(self, descr: FieldDescr) -> None:
        """Clear the field so that has() reports False."""
        self.raw.delete_field(descr.field_num)

    def set(self, descr: FieldDescr, value: Value) -> None:
        """Store ``value`` in the field; raise if it does not fit the field."""
        self.raw.set_field(descr.field_num, _raw_of(value, descr))

    def new_field(self, descr: FieldDescr) -> Value:
        """Return a new Value assignable to the field.

        Scalars give their zero value; lists and Structs a new empty one.
        """
        ft = descr.type
        fd = descr.fd
        if ft == FieldType.STRUCT:
            mapping = fd.mapping if fd.mapping is not None else self.raw.mapping
            return value_of_struct(_sub_descr(descr, mapping).new())
        if ft == FieldType.LIST_STRUCTS:
            mapping = fd.mapping if fd.mapping is not None else self.raw.mapping
            return value_of_list(ListStructs(StructList(mapping), _sub_descr(descr, mapping)))
        if ft == FieldType.LIST_BOOLS:
            return value_of_list(ListBools(Bools()))
        if ft in NUMERIC_LIST_TYPES:
            return value_of_list(ListNumbers(Numbers(ft)))
        if ft == FieldType.LIST_BYTES:
            return value_of_list(ListBytes(BytesList(field_type=ft)))
        if ft == FieldType.LIST_STRINGS:
            return value_of_list(ListStrings(BytesList(field_type=ft)))
        if ft == FieldType.BOOL or ft in NUMBER_TYPES or ft in (FieldType.BYTES, FieldType.STRING):
            result = Value(header=Header(field_type=ft))
            if ft in _WIDE_TYPES:
                result.data = bytes(8)
            if descr.is_enum and ft in _ENUM_TYPES:
                result.is_enum = True
                result.enum_group = _enum_group_for(fd, descr)
            return result
        raise TypeError(f"unsupported type {ft}")