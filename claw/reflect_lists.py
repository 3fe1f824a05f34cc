"""Reflection views over Claw list fields, exposing their items as Values."""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Optional

from claw.codec import Bools, BytesList, Numbers, Struct, StructList
from claw.header import Header
from claw.mapping import NUMERIC_LIST_TYPES, FieldType
from claw.values import (
    Value,
    value_of_bool,
    value_of_bytes,
    value_of_number,
    value_of_string,
    value_of_struct,
)


def _bytes_value(data: bytes, field_type: FieldType) -> Value:
    """Return a Value for a list entry; empty entries are allowed in lists."""
    if not data:
        return Value(header=Header(field_type=field_type, final40=0))
    if field_type == FieldType.STRING:
        return value_of_string(data.decode("utf-8", "surrogateescape"))
    return value_of_bytes(data)


def _raw_struct(value: Value) -> Struct:
    """Extract the underlying Struct from a Value holding a Struct."""
    held = value.as_struct()
    if isinstance(held, Struct):
        return held
    raw = getattr(held, "raw", None)
    if isinstance(raw, Struct):
        return raw
    raise TypeError(f"cannot store {type(held).__name__} in a list of Structs")


class _ListView:
    """Behaviour shared by every reflection list."""

    field_type: FieldType

    def __init__(self, raw: Any) -> None:
        self.raw = raw

    def __len__(self) -> int:
        return len(self.raw)

    def __iter__(self) -> Iterator[Value]:
        return (self.get(index) for index in range(len(self.raw)))

    def get(self, index: int) -> Value:
        raise NotImplementedError

    def new(self) -> Any:
        """Only lists of Structs can create new items."""
        raise TypeError(f"{type(self).__name__} does not support new()")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.raw!r})"


class ListBools(_ListView):
    """A reflection view over a list of bools."""

    field_type = FieldType.LIST_BOOLS

    def __init__(self, raw: Optional[Bools] = None) -> None:
        super().__init__(raw if raw is not None else Bools())

    def get(self, index: int) -> Value:
        """Return the item at ``index`` as a Value."""
        return value_of_bool(self.raw[index])

    def set(self, index: int, value: Value) -> None:
        """Replace the item at ``index``; the Value must hold a bool."""
        self.raw[index] = value.as_bool()

    def append(self, value: Value) -> None:
        """Append a Value holding a bool."""
        self.raw.append(value.as_bool())


class ListNumbers(_ListView):
    """A reflection view over a list of numbers of one type."""

    def __init__(self, raw: Numbers) -> None:
        super().__init__(raw)
        self.field_type = raw.field_type
        self.element_type = raw.element_type

    def _number(self, value: Value) -> Any:
        if value.field_type != self.element_type or value.is_enum and False:
            raise TypeError(
                f"list holds {self.element_type}, Value was {value.field_type}"
            )
        return value.to_python() if not value.is_enum else value.header.final40

    def get(self, index: int) -> Value:
        """Return the item at ``index`` as a Value."""
        return value_of_number(self.raw[index], self.element_type)

    def set(self, index: int, value: Value) -> None:
        """Replace the item at ``index``; the Value must hold the list's number type."""
        self.raw[index] = self._number(value)

    def append(self, value: Value) -> None:
        """Append a Value holding the list's number type."""
        self.raw.append(self._number(value))


class ListBytes(_ListView):
    """A reflection view over a list of byte strings."""

    field_type = FieldType.LIST_BYTES

    def __init__(self, raw: Optional[BytesList] = None) -> None:
        super().__init__(raw if raw is not None else BytesList())

    def get(self, index: int) -> Value:
        """Return the item at ``index`` as a Value."""
        return _bytes_value(self.raw[index], FieldType.BYTES)

    def set(self, index: int, value: Value) -> None:
        """Replace the item at ``index``; the Value must hold bytes."""
        self.raw[index] = value.as_bytes()

    def append(self, value: Value) -> None:
        """Append a Value holding bytes."""
        self.raw.append(value.as_bytes())


class ListStrings(_ListView):
    """A reflection view over a list of strings."""

    field_type = FieldType.LIST_STRINGS

    def __init__(self, raw: Optional[BytesList] = None) -> None:
        super().__init__(
            raw if raw is not None else BytesList(field_type=FieldType.LIST_STRINGS)
        )

    @staticmethod
    def _text(value: Value) -> str:
        if value.field_type != FieldType.STRING:
            raise TypeError(f"Value is not String, was {value.field_type}")
        return value.as_string()

    def get(self, index: int) -> Value:
        """Return the item at ``index`` as a Value."""
        return _bytes_value(self.raw[index], FieldType.STRING)

    def set(self, index: int, value: Value) -> None:
        """Replace the item at ``index``; the Value must hold a string."""
        self.raw[index] = self._text(value)

    def append(self, value: Value) -> None:
        """Append a Value holding a string."""
        self.raw.append(self._text(value))


class ListStructs(_ListView):
    """A reflection view over a list of Structs.

    With a descriptor, items are handed out through ``descr.wrap(raw)``;
    without one, the raw Structs are handed out.
    """

    field_type = FieldType.LIST_STRUCTS

    def __init__(self, raw: StructList, descr: Any = None) -> None:
        super().__init__(raw)
        self.descr = descr

    def _wrap(self, raw: Struct) -> Any:
        return self.descr.wrap(raw) if self.descr is not None else raw

    def get(self, index: int) -> Value:
        """Return the item at ``index`` as a Value holding a Struct."""
        return value_of_struct(self._wrap(self.raw[index]))

    def set(self, index: int, value: Value) -> None:
        """Replace the item at ``index`` with the Struct the Value holds."""
        self.raw[index] = _raw_struct(value)

    def append(self, value: Value) -> None:
        """Append the Struct the Value holds."""
        self.raw.append(_raw_struct(value))

    def new(self) -> Any:
        """Return a new empty Struct of the list's type; it is not appended."""
        return self._wrap(self.raw.new())


def _infer_type(items: list) -> FieldType:
    if not items:
        raise ValueError("cannot infer the list type of an empty list")
    first = items[0]
    if isinstance(first, bool):
        return FieldType.LIST_BOOLS
    if isinstance(first, str):
        return FieldType.LIST_STRINGS
    if isinstance(first, (bytes, bytearray, memoryview)):
        return FieldType.LIST_BYTES
    if isinstance(first, int):
        return FieldType.LIST_INT64
    if isinstance(first, float):
        return FieldType.LIST_FLOAT64
    raise TypeError(f"{type(first).__name__} is not supported")


def list_from(items: Iterable[Any], field_type: Optional[FieldType] = None) -> Any:
    """Create a reflection list from Python items.

    Supports bools, numbers, strings and bytes. Without ``field_type`` the
    type follows the first item: ints become LIST_INT64, floats LIST_FLOAT64.
    """
    items = list(items)
    ft = FieldType(field_type) if field_type is not None else _infer_type(items)
    if ft == FieldType.LIST_BOOLS:
        return ListBools(Bools(items))
    if ft in NUMERIC_LIST_TYPES:
        return ListNumbers(Numbers(ft, items))
    if ft == FieldType.LIST_BYTES:
        return ListBytes(BytesList(items, FieldType.LIST_BYTES))
    if ft == FieldType.LIST_STRINGS:
        return ListStrings(BytesList(items, FieldType.LIST_STRINGS))
    raise ValueError(f"{ft} is not supported")