"""Read-only values used to get and set Struct fields through reflection."""

from __future__ import annotations

import operator
import struct as _struct
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from claw.enums import EnumGroup, EnumValue
from claw.header import MAX_DATA_SIZE, Header
from claw.mapping import FieldType

_INT_BITS = {
    FieldType.INT8: 8,
    FieldType.INT16: 16,
    FieldType.INT32: 32,
    FieldType.INT64: 64,
    FieldType.UINT8: 8,
    FieldType.UINT16: 16,
    FieldType.UINT32: 32,
    FieldType.UINT64: 64,
}
_SIGNED = frozenset({FieldType.INT8, FieldType.INT16, FieldType.INT32, FieldType.INT64})
_UNSIGNED = frozenset(
    {FieldType.UINT8, FieldType.UINT16, FieldType.UINT32, FieldType.UINT64}
)
_FLOATS = frozenset({FieldType.FLOAT32, FieldType.FLOAT64})
_LOW32 = 0xFFFFFFFF


def _list_items(items: Any) -> Iterator["Value"]:
    """Yield the Values held by a reflection list."""
    for index in range(len(items)):
        yield items.get(index)


@dataclass
class Value:
    """A Claw value: a scalar held in a header (plus data), a list or a Struct."""

    header: Optional[Header] = None
    data: Optional[bytes] = None
    is_enum: bool = False
    enum_group: Optional[EnumGroup] = None
    list_value: Any = None
    struct_value: Any = None

    @property
    def field_type(self) -> Optional[FieldType]:
        """The field type recorded in the header, or None without a header."""
        if self.header is None:
            return None
        return FieldType(self.header.field_type)

    def _require_header(self) -> FieldType:
        if self.header is None:
            raise TypeError("Value is empty value")
        return FieldType(self.header.field_type)

    def _raw_number(self) -> int:
        if self.data is None:
            return self.header.final40 & _LOW32
        return int.from_bytes(bytes(self.data[:8]).ljust(8, b"\0"), "little")

    def _integer(self, field_type: FieldType) -> int:
        bits = _INT_BITS[field_type]
        raw = self._raw_number() & ((1 << bits) - 1)
        if field_type in _SIGNED and raw >> (bits - 1):
            raw -= 1 << bits
        return raw

    def as_bool(self) -> bool:
        """Return the boolean held; raise TypeError for any other type."""
        ft = self._require_header()
        if ft != FieldType.BOOL:
            raise TypeError(f"Value is not Bool, was {ft}")
        return bool(self.header.final40 & 1)

    def as_bytes(self) -> bytes:
        """Return the bytes held; raise TypeError for any other type."""
        ft = self._require_header()
        if ft != FieldType.BYTES:
            raise TypeError(f"Value is not Bytes, was {ft}")
        if self.data is None:
            return b""
        return bytes(self.data)

    def as_enum(self) -> Optional[EnumValue]:
        """Return the enumerated value held, or None if the group lacks it."""
        if not self.is_enum:
            raise TypeError("as_enum() called on non enum value")
        return self.enum_group.by_value(self.header.final40 & 0xFFFF)

    def as_float(self) -> float:
        """Return the float held; raise TypeError for any other type."""
        ft = self._require_header()
        if ft not in _FLOATS:
            raise TypeError(
                f"field type was not for a float32 or float64, was {ft}"
            )
        if self.data is None:
            return _struct.unpack("<f", (self._raw_number() & _LOW32).to_bytes(4, "little"))[0]
        return _struct.unpack("<d", self._raw_number().to_bytes(8, "little"))[0]

    def as_int(self) -> int:
        """Return the signed integer held; raise TypeError for any other type."""
        ft = self._require_header()
        if ft not in _SIGNED:
            raise TypeError(
                f"field type was not for a int8, int16, int32 or int64, was {ft}"
            )
        return self._integer(ft)

    def as_uint(self) -> int:
        """Return the unsigned integer held; raise TypeError for any other type."""
        ft = self._require_header()
        if ft not in _UNSIGNED:
            raise TypeError(
                f"field type was not for a uint8, uint16, uint32 or uint64, was {ft}"
            )
        return self._integer(ft)

    def as_string(self) -> str:
        """Return the value as text.

        Strings give their text, enums their name and Structs and lists a
        readable rendering; anything else is rendered from ``to_python()``.
        """
        if self.struct_value is not None:
            parts = (
                f"{descr.name}: {value.as_string()}"
                for descr, value in self.struct_value.fields()
                if value is not None
            )
            return "{" + ", ".join(parts) + "}"
        if self.list_value is not None:
            return "[" + ", ".join(v.as_string() for v in _list_items(self.list_value)) + "]"
        if self.header is None:
            return "<invalid Value>"
        if self.is_enum:
            found = self.as_enum()
            return found.name if found is not None else str(self.header.final40)
        if self.field_type == FieldType.STRING:
            if self.data is None:
                return ""
            return bytes(self.data).decode("utf-8", "surrogateescape")
        return str(self.to_python())

    def as_list(self) -> Any:
        """Return the list held; raise TypeError if this is not a list."""
        if self.list_value is None:
            raise TypeError("type is not a list type")
        return self.list_value

    def as_struct(self) -> Any:
        """Return the Struct held; raise TypeError if this is not a Struct."""
        if self.struct_value is None:
            raise TypeError("type is not a struct type")
        return self.struct_value

    def to_python(self) -> Any:
        """Convert the value to the natural Python object.

        Enums give an EnumValue, Structs the Struct itself, lists a Python
        list of converted items and scalars a bool, int, float, str or bytes.
        """
        if (
            self.header is None
            and self.struct_value is None
            and self.enum_group is None
            and self.list_value is None
        ):
            return None
        if self.is_enum:
            return self.as_enum()
        if self.struct_value is not None:
            return self.struct_value
        if self.list_value is not None:
            return [item.to_python() for item in _list_items(self.list_value)]
        ft = self.field_type
        if ft == FieldType.BOOL:
            return self.as_bool()
        if ft in _SIGNED:
            return self.as_int()
        if ft in _UNSIGNED:
            return self.as_uint()
        if ft in _FLOATS:
            return self.as_float()
        if ft == FieldType.STRING:
            return self.as_string()
        if ft == FieldType.BYTES:
            return self.as_bytes()
        raise TypeError(f"unsupported type {ft}")

    def __str__(self) -> str:
        return self.as_string()


def value_of_bool(value: bool) -> Value:
    """Return a Value holding a bool."""
    return Value(header=Header(field_type=FieldType.BOOL, final40=1 if value else 0))


def _value_of_bytes(value: bytes, field_type: FieldType) -> Value:
    if len(value) == 0:
        raise ValueError("cannot encode an empty Bytes value")
    if len(value) > MAX_DATA_SIZE:
        raise ValueError(
            f"cannot set a String or Byte field to size > {MAX_DATA_SIZE}"
        )
    return Value(
        header=Header(field_type=field_type, final40=len(value)), data=bytes(value)
    )


def value_of_bytes(value: bytes) -> Value:
    """Return a Value holding bytes; empty bytes raise ValueError."""
    return _value_of_bytes(bytes(value), FieldType.BYTES)


def value_of_string(value: str) -> Value:
    """Return a Value holding a string; an empty string raises ValueError."""
    return _value_of_bytes(value.encode("utf-8", "surrogateescape"), FieldType.STRING)


def value_of_enum(
    value: int, enum_group: EnumGroup, field_type: Optional[FieldType] = None
) -> Value:
    """Return a Value holding an enumerated number of ``enum_group``.

    Without ``field_type`` the type follows the group's size, 8 or 16 bits.
    """
    if field_type is None:
        sizes = {8: FieldType.UINT8, 16: FieldType.UINT16}
        if enum_group.size not in sizes:
            raise ValueError(f"enum group size must be 8 or 16, was {enum_group.size}")
        field_type = sizes[enum_group.size]
    field_type = FieldType(field_type)
    if field_type not in (FieldType.UINT8, FieldType.UINT16):
        raise ValueError(f"an enum must be UINT8 or UINT16, was {field_type}")
    result = value_of_number(value, field_type)
    result.is_enum = True
    result.enum_group = enum_group
    return result


def value_of_number(value: Any, field_type: Optional[FieldType] = None) -> Value:
    """Return a Value holding a number of ``field_type``.

    Without ``field_type`` an int is stored as INT64 and a float as FLOAT64.
    A number that does not fit the type raises ValueError.
    """
    if isinstance(value, bool):
        raise TypeError("a bool is not a number")
    if field_type is None:
        if isinstance(value, int):
            field_type = FieldType.INT64
        elif isinstance(value, float):
            field_type = FieldType.FLOAT64
        else:
            raise TypeError(f"unsupported number type: {type(value).__name__}")
    field_type = FieldType(field_type)

    if field_type in _FLOATS:
        if not isinstance(value, (int, float)):
            raise TypeError(f"unsupported number type: {type(value).__name__}")
        try:
            if field_type == FieldType.FLOAT32:
                raw = int.from_bytes(_struct.pack("<f", value), "little")
            else:
                raw = int.from_bytes(_struct.pack("<d", value), "little")
        except OverflowError as exc:
            raise ValueError(f"{value} does not fit in {field_type}") from exc
        size = 32 if field_type == FieldType.FLOAT32 else 64
    elif field_type in _INT_BITS:
        try:
            number = operator.index(value)
        except TypeError as exc:
            raise TypeError(f"unsupported number type: {type(value).__name__}") from exc
        size = _INT_BITS[field_type]
        if field_type in _SIGNED:
            low, high = -(1 << (size - 1)), (1 << (size - 1)) - 1
        else:
            low, high = 0, (1 << size) - 1
        if not low <= number <= high:
            raise ValueError(f"{number} does not fit in {field_type}")
        raw = number & ((1 << size) - 1)
    else:
        raise ValueError(f"{field_type} is not a number type")

    header = Header(field_type=field_type)
    if size == 64:
        return Value(header=header, data=raw.to_bytes(8, "little"))
    header.final40 = raw
    return Value(header=header)


def value_of_list(value: Any) -> Value:
    """Return a Value holding a reflection list."""
    return Value(list_value=value)


def value_of_struct(value: Any) -> Value:
    """Return a Value holding a Struct; None raises ValueError."""
    if value is None:
        raise ValueError("value cannot be None")
    return Value(struct_value=value)