"""Binary encoding and decoding of Claw Structs and their list types."""

from __future__ import annotations

import abc
import operator
import struct as _struct
from typing import Any, Iterable, Iterator

from claw.header import HEADER_SIZE, MAX_DATA_SIZE, Header
from claw.mapping import NUMBER_TYPES, NUMERIC_LIST_TYPES, FieldDescr, FieldType, Map


class DecodeError(ValueError):
    """Raised when encoded data is malformed."""


class EncodeError(ValueError):
    """Raised when a Struct cannot be encoded."""


_FORMATS = {
    FieldType.INT8: "b",
    FieldType.INT16: "h",
    FieldType.INT32: "i",
    FieldType.INT64: "q",
    FieldType.UINT8: "B",
    FieldType.UINT16: "H",
    FieldType.UINT32: "I",
    FieldType.UINT64: "Q",
    FieldType.FLOAT32: "f",
    FieldType.FLOAT64: "d",
}

_LIST_ELEMENT = {
    FieldType.LIST_INT8: FieldType.INT8,
    FieldType.LIST_INT16: FieldType.INT16,
    FieldType.LIST_INT32: FieldType.INT32,
    FieldType.LIST_INT64: FieldType.INT64,
    FieldType.LIST_UINT8: FieldType.UINT8,
    FieldType.LIST_UINT16: FieldType.UINT16,
    FieldType.LIST_UINT32: FieldType.UINT32,
    FieldType.LIST_UINT64: FieldType.UINT64,
    FieldType.LIST_FLOAT32: FieldType.FLOAT32,
    FieldType.LIST_FLOAT64: FieldType.FLOAT64,
}

# Scalars whose value lives in the header's final 40 bits.
_SMALL_SCALARS = frozenset(
    {
        FieldType.BOOL,
        FieldType.INT8,
        FieldType.INT16,
        FieldType.INT32,
        FieldType.UINT8,
        FieldType.UINT16,
        FieldType.UINT32,
        FieldType.FLOAT32,
    }
)
# Scalars written as a header followed by 8 data bytes.
_WIDE_SCALARS = frozenset({FieldType.INT64, FieldType.UINT64, FieldType.FLOAT64})
_BYTES_LISTS = frozenset({FieldType.LIST_BYTES, FieldType.LIST_STRINGS})


def padding_needed(size: int) -> int:
    """Return the bytes needed to bring ``size`` to a multiple of 8."""
    return -size % 8


def size_with_padding(size: int) -> int:
    """Return ``size`` rounded up to a multiple of 8."""
    return size + padding_needed(size)


def _type_name(raw: int) -> str:
    try:
        return str(FieldType(raw))
    except ValueError:
        return str(raw)


def _coerce_number(value: Any, field_type: FieldType) -> Any:
    """Check that ``value`` fits ``field_type`` and return it in stored form."""
    if isinstance(value, bool):
        raise TypeError("a bool is not a number")
    fmt = "<" + _FORMATS[field_type]
    if field_type in (FieldType.FLOAT32, FieldType.FLOAT64):
        if not isinstance(value, (int, float)):
            raise TypeError(f"unsupported number type: {type(value).__name__}")
        try:
            packed = _struct.pack(fmt, value)
        except (OverflowError, _struct.error) as exc:
            raise ValueError(f"{value} does not fit in {field_type}") from exc
        return _struct.unpack(fmt, packed)[0]
    number = operator.index(value)
    try:
        _struct.pack(fmt, number)
    except _struct.error as exc:
        raise ValueError(f"{number} does not fit in {field_type}") from exc
    return number


def _raw_bits(value: Any, field_type: FieldType) -> int:
    return int.from_bytes(_struct.pack("<" + _FORMATS[field_type], value), "little")


def _from_raw(raw: int, field_type: FieldType) -> Any:
    fmt = "<" + _FORMATS[field_type]
    width = _struct.calcsize(fmt)
    raw &= (1 << (8 * width)) - 1
    return _struct.unpack(fmt, raw.to_bytes(width, "little"))[0]


def _list_header(buf: memoryview, pos: int, expected: FieldType) -> Header:
    if len(buf) - pos < HEADER_SIZE:
        raise DecodeError("list header was < 64 bits")
    header = Header.from_bytes(buf[pos : pos + HEADER_SIZE])
    if header.field_type != expected:
        raise DecodeError(
            f"expected a {expected} header, got {_type_name(header.field_type)}"
        )
    if header.final40 == 0:
        raise DecodeError(f"{expected} header says it holds no items")
    return header


class _Items(abc.ABC):
    """A typed, mutable sequence used to hold a list field."""

    def __init__(self) -> None:
        self._items: list[Any] = []

    @abc.abstractmethod
    def _check(self, value: Any) -> Any:
        """Validate ``value`` and return it in stored form."""

    def append(self, *values: Any) -> None:
        """Append values to the end of the list."""
        self._items.extend([self._check(v) for v in values])

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._items)

    def __getitem__(self, index: int) -> Any:
        return self._items[index]

    def __setitem__(self, index: int, value: Any) -> None:
        self._items[index] = self._check(value)

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._items == other._items

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._items!r})"


class Bools(_Items):
    """A list of booleans, packed one bit per value."""

    def __init__(self, values: Iterable[bool] = ()) -> None:
        super().__init__()
        self.append(*values)

    def _check(self, value: Any) -> bool:
        if not isinstance(value, bool):
            raise TypeError(f"expected bool, got {type(value).__name__}")
        return value

    def encode(self) -> bytes:
        """Return the wire form of the list."""
        return self._encode(0)

    def _encode(self, field_num: int) -> bytes:
        data = bytearray(8 * ((len(self._items) + 63) // 64))
        for index, value in enumerate(self._items):
            if value:
                data[index // 8] |= 1 << (index % 8)
        header = Header(field_num, FieldType.LIST_BOOLS, len(self._items))
        return header.to_bytes() + bytes(data)

    @classmethod
    def _decode(cls, buf: memoryview, pos: int) -> tuple["Bools", int]:
        count = _list_header(buf, pos, FieldType.LIST_BOOLS).final40
        end = pos + HEADER_SIZE + 8 * ((count + 63) // 64)
        if end > len(buf):
            raise DecodeError("list of bools was clipped in size")
        data = buf[pos + HEADER_SIZE : end]
        result = cls()
        result._items = [bool(data[i // 8] >> (i % 8) & 1) for i in range(count)]
        return result, end


class Numbers(_Items):
    """A list of numbers of one numeric list type."""

    def __init__(self, field_type: FieldType, values: Iterable[Any] = ()) -> None:
        field_type = FieldType(field_type)
        if field_type not in NUMERIC_LIST_TYPES:
            raise ValueError(f"{field_type} is not a numeric list type")
        super().__init__()
        self.field_type = field_type
        self.element_type = _LIST_ELEMENT[field_type]
        self.append(*values)

    def _check(self, value: Any) -> Any:
        return _coerce_number(value, self.element_type)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Numbers):
            return NotImplemented
        return self.field_type == other.field_type and self._items == other._items

    def encode(self) -> bytes:
        """Return the wire form of the list."""
        return self._encode(0)

    def _encode(self, field_num: int) -> bytes:
        count = len(self._items)
        data = _struct.pack(f"<{count}{_FORMATS[self.element_type]}", *self._items)
        header = Header(field_num, self.field_type, count)
        return header.to_bytes() + data + bytes(padding_needed(len(data)))

    @classmethod
    def _decode(
        cls, buf: memoryview, pos: int, field_type: FieldType
    ) -> tuple["Numbers", int]:
        count = _list_header(buf, pos, field_type).final40
        fmt = _FORMATS[_LIST_ELEMENT[field_type]]
        width = _struct.calcsize(fmt)
        end = pos + HEADER_SIZE + size_with_padding(count * width)
        if end > len(buf):
            raise DecodeError(f"list of numbers ({field_type}) was clipped in size")
        start = pos + HEADER_SIZE
        result = cls(field_type)
        result._items = list(
            _struct.unpack(f"<{count}{fmt}", buf[start : start + count * width])
        )
        return result, end


class BytesList(_Items):
    """A list of byte strings; with LIST_STRINGS, entries may be given as str."""

    def __init__(
        self,
        values: Iterable[Any] = (),
        field_type: FieldType = FieldType.LIST_BYTES,
    ) -> None:
        field_type = FieldType(field_type)
        if field_type not in _BYTES_LISTS:
            raise ValueError(f"{field_type} is not a bytes or strings list type")
        super().__init__()
        self.field_type = field_type
        self.append(*values)

    def _check(self, value: Any) -> bytes:
        if isinstance(value, str) and self.field_type == FieldType.LIST_STRINGS:
            data = value.encode("utf-8", "surrogateescape")
        elif isinstance(value, (bytes, bytearray, memoryview)):
            data = bytes(value)
        else:
            raise TypeError(f"cannot store {type(value).__name__} in {self.field_type}")
        if len(data) > 0xFFFFFFFF:
            raise ValueError("list entry is too large")
        return data

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BytesList):
            return NotImplemented
        return self.field_type == other.field_type and self._items == other._items

    def encode(self) -> bytes:
        """Return the wire form of the list."""
        return self._encode(0)

    def _encode(self, field_num: int) -> bytes:
        parts = [Header(field_num, self.field_type, len(self._items)).to_bytes()]
        for item in self._items:
            parts.append(_struct.pack("<I", len(item)))
            parts.append(item)
        encoded = b"".join(parts)
        return encoded + bytes(padding_needed(len(encoded)))

    @classmethod
    def _decode(
        cls, buf: memoryview, pos: int, field_type: FieldType
    ) -> tuple["BytesList", int]:
        count = _list_header(buf, pos, field_type).final40
        result = cls(field_type=field_type)
        cursor = pos + HEADER_SIZE
        for _ in range(count):
            if len(buf) - cursor < 4:
                raise DecodeError("list of bytes was clipped in an entry header")
            (size,) = _struct.unpack("<I", buf[cursor : cursor + 4])
            cursor += 4
            if len(buf) - cursor < size:
                raise DecodeError("list of bytes was clipped in an entry")
            result._items.append(bytes(buf[cursor : cursor + size]))
            cursor += size
        end = pos + size_with_padding(cursor - pos)
        if end > len(buf):
            raise DecodeError("list of bytes was missing its padding")
        return result, end


class StructList(_Items):
    """A list of Structs that all share one mapping."""

    def __init__(self, mapping: Map, values: Iterable["Struct"] = ()) -> None:
        super().__init__()
        self.mapping = mapping
        self.append(*values)

    def _check(self, value: Any) -> "Struct":
        if not isinstance(value, Struct):
            raise TypeError(f"expected Struct, got {type(value).__name__}")
        if value.mapping is not self.mapping and value.mapping != self.mapping:
            raise ValueError(
                f"Struct {value.mapping.name!r} does not match list type "
                f"{self.mapping.name!r}"
            )
        return value

    def new(self) -> "Struct":
        """Return a new empty Struct of the list's type; it is not appended."""
        return Struct(self.mapping)

    def append(self, *args: "Struct") -> None:
        """Append Structs to the end of the list."""
        super().append(*args)

    def encode(self) -> bytes:
        """Return the wire form of the list."""
        return self._encode(0)

    def _encode(self, field_num: int) -> bytes:
        header = Header(field_num, FieldType.LIST_STRUCTS, len(self._items))
        return header.to_bytes() + b"".join(s.marshal() for s in self._items)

    @classmethod
    def _decode(
        cls, buf: memoryview, pos: int, mapping: Map
    ) -> tuple["StructList", int]:
        count = _list_header(buf, pos, FieldType.LIST_STRUCTS).final40
        result = cls(mapping)
        cursor = pos + HEADER_SIZE
        for _ in range(count):
            item = Struct(mapping)
            cursor += item._unmarshal_from(buf, cursor)
            result._items.append(item)
        return result, cursor


class Struct:
    """A Claw Struct: field values indexed by field number, per a Map."""

    def __init__(self, mapping: Map, field_num: int = 0) -> None:
        self.mapping = mapping
        self.field_num = field_num
        self.zero_type_compression = True
        self._fields: list[Any] = [None] * len(mapping.fields)
        self._excess = b""

    def __repr__(self) -> str:
        return f"Struct({self.mapping.name!r}, fields={self._fields!r})"

    def _descr(self, field_num: int) -> FieldDescr:
        if not 0 <= field_num < len(self._fields):
            raise IndexError(f"fieldNum {field_num} doesn't exist")
        return self.mapping.fields[field_num]

    def _sub_mapping(self, descr: FieldDescr) -> Map:
        # A missing mapping means the field holds this Struct's own type.
        return descr.mapping if descr.mapping is not None else self.mapping

    @property
    def size(self) -> int:
        """The number of bytes the Struct encodes to."""
        return len(self.marshal())

    def set_field(self, field_num: int, value: Any) -> None:
        """Set a field; None clears it. Raise if the value does not fit the field."""
        descr = self._descr(field_num)
        if value is None:
            self._fields[field_num] = None
            return
        self._fields[field_num] = self._coerce(field_num, descr, value)

    def _coerce(self, field_num: int, descr: FieldDescr, value: Any) -> Any:
        ft = descr.type
        if ft == FieldType.BOOL:
            if not isinstance(value, bool):
                raise TypeError(f"field {descr.name!r} needs a bool")
            return value
        if ft in NUMBER_TYPES:
            return _coerce_number(value, ft)
        if ft == FieldType.STRING:
            if not isinstance(value, str):
                raise TypeError(f"field {descr.name!r} needs a str")
            self._check_size(len(value.encode("utf-8", "surrogateescape")))
            return value
        if ft == FieldType.BYTES:
            if not isinstance(value, (bytes, bytearray, memoryview)):
                raise TypeError(f"field {descr.name!r} needs bytes")
            value = bytes(value)
            self._check_size(len(value))
            return value
        if ft == FieldType.STRUCT:
            if not isinstance(value, Struct):
                raise TypeError(f"field {descr.name!r} needs a Struct")
            expected = self._sub_mapping(descr)
            if value.mapping is not expected and value.mapping != expected:
                raise ValueError(
                    f"field {descr.name!r} needs Struct {expected.name!r}, "
                    f"got {value.mapping.name!r}"
                )
            value.field_num = field_num
            return value
        if ft == FieldType.LIST_BOOLS:
            return value if isinstance(value, Bools) else Bools(value)
        if ft in NUMERIC_LIST_TYPES:
            if isinstance(value, Numbers):
                if value.field_type != ft:
                    raise ValueError(f"field {descr.name!r} needs {ft}, got {value.field_type}")
                return value
            return Numbers(ft, value)
        if ft in _BYTES_LISTS:
            if isinstance(value, BytesList):
                if value.field_type != ft:
                    raise ValueError(f"field {descr.name!r} needs {ft}, got {value.field_type}")
                return value
            return BytesList(value, ft)
        if ft == FieldType.LIST_STRUCTS:
            expected = self._sub_mapping(descr)
            if isinstance(value, StructList):
                if value.mapping is not expected and value.mapping != expected:
                    raise ValueError(f"field {descr.name!r} holds a different Struct type")
                return value
            return StructList(expected, value)
        raise ValueError(f"field {descr.name!r} has unsupported type {ft}")

    @staticmethod
    def _check_size(size: int) -> None:
        if size == 0:
            raise ValueError("cannot encode an empty Bytes or String value")
        if size > MAX_DATA_SIZE:
            raise ValueError(f"cannot set a String or Byte field to size > {MAX_DATA_SIZE}")

    def get_field(self, field_num: int) -> Any:
        """Return the value of a field, or None if it is not set."""
        self._descr(field_num)
        return self._fields[field_num]

    def delete_field(self, field_num: int) -> None:
        """Clear a field."""
        self._descr(field_num)
        self._fields[field_num] = None

    def is_set(self, field_num: int) -> bool:
        """Report whether a field holds a value."""
        self._descr(field_num)
        return self._fields[field_num] is not None

    def new_from(self) -> "Struct":
        """Return a new empty Struct with the same mapping and settings."""
        fresh = Struct(self.mapping)
        fresh.zero_type_compression = self.zero_type_compression
        return fresh

    def set_no_zero_type_compression(self) -> None:
        """Write scalar fields even when they hold their zero value."""
        self.zero_type_compression = False

    def marshal(self) -> bytes:
        """Return the wire form of the Struct."""
        body = b"".join(
            self._encode_field(index, descr, value)
            for index, (descr, value) in enumerate(zip(self.mapping.fields, self._fields))
            if value is not None
        ) + self._excess
        total = HEADER_SIZE + len(body)
        if total > MAX_DATA_SIZE:
            raise EncodeError(f"Struct size {total} is too large")
        return Header(self.field_num, FieldType.STRUCT, total).to_bytes() + body

    def _encode_field(self, index: int, descr: FieldDescr, value: Any) -> bytes:
        ft = descr.type
        if ft in _SMALL_SCALARS:
            raw = int(value) if ft == FieldType.BOOL else _raw_bits(value, ft)
            if self.zero_type_compression and raw == 0:
                return b""
            return Header(index, ft, raw).to_bytes()
        if ft in _WIDE_SCALARS:
            data = _struct.pack("<" + _FORMATS[ft], value)
            if self.zero_type_compression and not any(data):
                return b""
            return Header(index, ft, 0).to_bytes() + data
        if ft in (FieldType.STRING, FieldType.BYTES):
            data = value.encode("utf-8", "surrogateescape") if isinstance(value, str) else value
            if self.zero_type_compression and not data:
                return b""
            return Header(index, ft, len(data)).to_bytes() + data + bytes(padding_needed(len(data)))
        if ft == FieldType.STRUCT:
            value.field_num = index
            return value.marshal()
        if ft == FieldType.LIST_BOOLS or ft in NUMERIC_LIST_TYPES or ft in _BYTES_LISTS or ft == FieldType.LIST_STRUCTS:
            if len(value) == 0:
                return b""
            return value._encode(index)
        raise EncodeError(f"received a field type {ft} that we don't support")

    def unmarshal(self, data: bytes) -> int:
        """Replace the Struct's contents with those decoded from ``data``.

        Returns the number of bytes the Struct took up.
        """
        return self._unmarshal_from(memoryview(bytes(data)), 0)

    def _unmarshal_from(self, buf: memoryview, offset: int) -> int:
        available = len(buf) - offset
        if available < HEADER_SIZE:
            raise DecodeError(
                f"could only read {max(available, 0)} bytes, a Struct header is always 8 bytes"
            )
        header = Header.from_bytes(buf[offset : offset + HEADER_SIZE])
        if header.field_type != FieldType.STRUCT:
            raise DecodeError(f"expecting Struct, got {_type_name(header.field_type)}")
        size = header.final40
        if size % 8 != 0 or size < HEADER_SIZE:
            raise DecodeError(f"Struct malformed: must have a size divisible by 8, was {size}")
        if size > available:
            raise DecodeError(f"problem reading Struct data: need {size} bytes, have {available}")
        self.field_num = header.field_num
        self._fields = [None] * len(self.mapping.fields)
        self._excess = b""
        self._unmarshal_fields(buf[offset + HEADER_SIZE : offset + size])
        return size

    def _unmarshal_fields(self, buf: memoryview) -> None:
        pos = 0
        last = -1
        max_fields = len(self.mapping.fields)
        while pos < len(buf):
            if len(buf) - pos < HEADER_SIZE:
                raise DecodeError(
                    "field inside Struct was malformed: not enough room for "
                    "field number and field type"
                )
            header = Header.from_bytes(buf[pos : pos + HEADER_SIZE])
            if header.field_num <= last:
                raise DecodeError(
                    f"Struct was malformed: field {header.field_num} came after field {last}"
                )
            last = header.field_num
            if header.field_num >= max_fields:
                # Fields from a newer version of this Struct are kept so they
                # are written back out unchanged.
                self._excess = bytes(buf[pos:])
                return
            descr = self.mapping.fields[header.field_num]
            if header.field_type != descr.type:
                raise DecodeError(
                    f"field {header.field_num} has type {_type_name(header.field_type)}, "
                    f"but the mapping says {descr.type}"
                )
            value, pos = self._decode_field(buf, pos, header, descr)
            self._fields[header.field_num] = value

    def _decode_field(
        self, buf: memoryview, pos: int, header: Header, descr: FieldDescr
    ) -> tuple[Any, int]:
        ft = descr.type
        rest = len(buf) - pos
        if ft == FieldType.BOOL:
            return bool(header.final40 & 1), pos + HEADER_SIZE
        if ft in _SMALL_SCALARS:
            return _from_raw(header.final40, ft), pos + HEADER_SIZE
        if ft in _WIDE_SCALARS:
            if rest < 16:
                raise DecodeError("can't decode a 64 bit number with < 128 bits")
            start = pos + HEADER_SIZE
            return _struct.unpack("<" + _FORMATS[ft], buf[start : start + 8])[0], pos + 16
        if ft in (FieldType.STRING, FieldType.BYTES):
            size = header.final40
            if size == 0:
                raise DecodeError("received a Bytes field of size 0 which is invalid")
            with_padding = size_with_padding(size) + HEADER_SIZE
            if rest < with_padding:
                raise DecodeError(
                    f"found string/byte field that was clipped in size, got {rest}, want {with_padding}"
                )
            data = bytes(buf[pos + HEADER_SIZE : pos + HEADER_SIZE + size])
            if ft == FieldType.STRING:
                return data.decode("utf-8", "surrogateescape"), pos + with_padding
            return data, pos + with_padding
        if ft == FieldType.STRUCT:
            sub = Struct(self._sub_mapping(descr))
            return sub, pos + sub._unmarshal_from(buf, pos)
        if ft == FieldType.LIST_BOOLS:
            return Bools._decode(buf, pos)
        if ft in NUMERIC_LIST_TYPES:
            return Numbers._decode(buf, pos, ft)
        if ft in _BYTES_LISTS:
            return BytesList._decode(buf, pos, ft)
        if ft == FieldType.LIST_STRUCTS:
            return StructList._decode(buf, pos, self._sub_mapping(descr))
        raise DecodeError(f"got field type {ft} that we don't support")