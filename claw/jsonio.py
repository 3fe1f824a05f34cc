"""Writing Claw Structs as JSON and reading them back."""

from __future__ import annotations

import base64
import binascii
import json
import math
import struct as _struct
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional, TextIO

from claw.mapping import FieldType
from claw.reflect_lists import list_from
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

_SIGNED = frozenset({FieldType.INT8, FieldType.INT16, FieldType.INT32, FieldType.INT64})
_UNSIGNED = frozenset({FieldType.UINT32, FieldType.UINT64})
_ENUM_SCALARS = frozenset({FieldType.UINT8, FieldType.UINT16})
_INT_LISTS = frozenset(
    {
        FieldType.LIST_INT8,
        FieldType.LIST_INT16,
        FieldType.LIST_INT32,
        FieldType.LIST_INT64,
        FieldType.LIST_UINT32,
        FieldType.LIST_UINT64,
    }
)
_ENUM_LISTS = frozenset({FieldType.LIST_UINT8, FieldType.LIST_UINT16})
_FLOAT_LISTS = {FieldType.LIST_FLOAT32: 32, FieldType.LIST_FLOAT64: 64}
_FLOAT_WORDS = {"NaN": math.nan, "Infinity": math.inf, "-Infinity": -math.inf}


def _to_f32(value: float) -> float:
    try:
        return _struct.unpack("<f", _struct.pack("<f", value))[0]
    except OverflowError as exc:
        raise ValueError(f"{value} does not fit in a float32") from exc


def _shortest(value: float, bit_size: int) -> str:
    if bit_size == 64:
        return repr(value)
    for precision in range(1, 10):
        text = f"{value:.{precision - 1}e}"
        if _to_f32(float(text)) == value:
            return text
    return repr(value)


def format_float(value: float, bit_size: int = 64) -> str:
    """Return the JSON text for a float of ``bit_size`` 32 or 64.

    NaN and the infinities become quoted strings; very small or very large
    magnitudes use exponent form, everything else plain decimal form, each
    with the fewest digits that read back to the same value.
    """
    if bit_size not in (32, 64):
        raise ValueError(f"bit size must be 32 or 64, was {bit_size}")
    value = float(value)
    if math.isnan(value):
        return '"NaN"'
    if math.isinf(value):
        return '"Infinity"' if value > 0 else '"-Infinity"'
    if bit_size == 32:
        value = _to_f32(value)
        low, high = _to_f32(1e-6), _to_f32(1e21)
    else:
        low, high = 1e-6, 1e21
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"
    magnitude = abs(value)
    use_exponent = magnitude < low or magnitude >= high

    sign, digit_tuple, exponent = Decimal(_shortest(value, bit_size)).as_tuple()
    raw_digits = "".join(str(d) for d in digit_tuple)
    digits = raw_digits.rstrip("0")
    exponent += len(raw_digits) - len(digits)
    prefix = "-" if sign else ""

    if not use_exponent:
        if exponent >= 0:
            return prefix + digits + "0" * exponent
        point = len(digits) + exponent
        if point > 0:
            return prefix + digits[:point] + "." + digits[point:]
        return prefix + "0." + "0" * (-point) + digits

    exp10 = exponent + len(digits) - 1
    mantissa = digits[0] + ("." + digits[1:] if len(digits) > 1 else "")
    if exp10 < 0:
        return f"{prefix}{mantissa}e-{-exp10}"
    return f"{prefix}{mantissa}e+{exp10:02d}"


def _reflect(struct: Any) -> Any:
    """Return the reflection Struct for ``struct``."""
    claw_struct = getattr(struct, "claw_struct", None)
    if callable(claw_struct):
        return claw_struct()
    if hasattr(struct, "fields") and hasattr(struct, "descr"):
        return struct
    raise TypeError(f"{type(struct).__name__} is not a Claw Struct")


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def _b64(data: bytes) -> str:
    return '"' + base64.b64encode(data).decode("ascii") + '"'


def _enum_group(descr: Any) -> Any:
    try:
        return descr.enum_group
    except TypeError:
        return None


@dataclass
class Options:
    """Options for writing Claw Structs as JSON."""

    use_enum_numbers: bool = False

    def _encode_struct(self, struct: Any) -> str:
        parts = [
            _quote(descr.name) + ":" + self._encode_value(descr, value)
            for descr, value in struct.fields()
            if value is not None
        ]
        return "{" + ",".join(parts) + "}"

    def _enum_number(self, descr: Any, number: int) -> str:
        if descr.is_enum and not self.use_enum_numbers:
            group = _enum_group(descr)
            found = group.by_value(number) if group is not None else None
            if found is not None:
                return _quote(found.name)
        return str(number)

    def _encode_value(self, descr: Any, value: Value) -> str:
        ft = descr.type
        if ft == FieldType.BOOL:
            return "true" if value.as_bool() else "false"
        if ft in _SIGNED:
            return str(value.as_int())
        if ft in _ENUM_SCALARS:
            if value.is_enum and not self.use_enum_numbers:
                found = value.as_enum()
                if found is not None:
                    return _quote(found.name)
            return self._enum_number(descr, value.as_uint())
        if ft in _UNSIGNED:
            return str(value.as_uint())
        if ft == FieldType.FLOAT32:
            return format_float(value.as_float(), 32)
        if ft == FieldType.FLOAT64:
            return format_float(value.as_float(), 64)
        if ft == FieldType.BYTES:
            return _b64(value.as_bytes())
        if ft == FieldType.STRING:
            return _quote(value.as_string())
        if ft == FieldType.STRUCT:
            return self._encode_struct(value.as_struct())

        items = list(value.as_list()) if ft.is_list else None
        if ft == FieldType.LIST_BOOLS:
            rendered = ["true" if item.as_bool() else "false" for item in items]
        elif ft in _INT_LISTS:
            rendered = [str(item.to_python()) for item in items]
        elif ft in _ENUM_LISTS:
            rendered = [self._enum_number(descr, item.as_uint()) for item in items]
        elif ft in _FLOAT_LISTS:
            rendered = [format_float(item.as_float(), _FLOAT_LISTS[ft]) for item in items]
        elif ft == FieldType.LIST_BYTES:
            rendered = [_b64(item.as_bytes()) for item in items]
        elif ft == FieldType.LIST_STRINGS:
            rendered = [_quote(item.as_string()) for item in items]
        elif ft == FieldType.LIST_STRUCTS:
            rendered = [self._encode_struct(item.as_struct()) for item in items]
        else:
            raise ValueError(f"problem: encountered unsupported field type: {ft}")
        return "[" + ",".join(rendered) + "]"


class Array:
    """Writes Claw Structs to a text stream as the entries of a JSON array."""

    def __init__(self, options: Optional[Options] = None, stream: Optional[TextIO] = None) -> None:
        self.options = options if options is not None else Options()
        self.reset(stream)

    def reset(self, stream: Optional[TextIO]) -> None:
        """Start a new array on ``stream``."""
        if stream is None:
            raise ValueError("Array needs a stream to write to")
        self._stream = stream
        self._entries = 0
        self._closed = False

    def write(self, struct: Any) -> None:
        """Write one Struct as the next entry of the array."""
        if self._closed:
            raise ValueError("Array is closed")
        text = self.options._encode_struct(_reflect(struct))
        self._stream.write(("[" if self._entries == 0 else ",") + text)
        self._entries += 1

    def close(self) -> None:
        """Finish the array with its closing bracket."""
        if self._closed:
            return
        self._stream.write("[]" if self._entries == 0 else "]")
        flush = getattr(self._stream, "flush", None)
        if callable(flush):
            flush()
        self._closed = True

    def __enter__(self) -> "Array":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def _to_int(val: Any) -> int:
    if isinstance(val, bool) or not isinstance(val, int):
        raise ValueError(f"not an integer, was {type(val).__name__}")
    return val


def _to_float(val: Any) -> float:
    if isinstance(val, str) and val in _FLOAT_WORDS:
        return _FLOAT_WORDS[val]
    if isinstance(val, bool) or not isinstance(val, (int, float, Decimal)):
        raise ValueError(f"not a number, was {type(val).__name__}")
    return float(val)


def _from_b64(text: Any) -> bytes:
    if not isinstance(text, str):
        raise ValueError(f"wasn't expected base64 bytes, was {type(text).__name__}")
    try:
        return base64.b64decode(text, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"invalid base64: {exc}") from exc


def _as_list(val: Any, what: str) -> list:
    if not isinstance(val, list):
        raise ValueError(f"wasn't expected {what}")
    return val


class Decoder:
    """Decodes the JSON form of a Struct into a reflection Struct."""

    def __init__(self, allow_unknown: bool = False) -> None:
        self.allow_unknown = allow_unknown

    def decode(self, data: Any, struct: Any) -> Any:
        """Decode a JSON object from ``data`` into ``struct`` and return it.

        ``data`` is text, bytes or a readable stream.
        """
        target = _reflect(struct)
        if hasattr(data, "read"):
            data = data.read()
        if isinstance(data, (bytes, bytearray)):
            data = bytes(data).decode("utf-8")
        try:
            parsed = json.loads(data, parse_float=Decimal)
        except json.JSONDecodeError as exc:
            raise ValueError(f"invalid JSON: {exc}") from exc
        if not isinstance(parsed, dict):
            raise ValueError("JSON data for a Struct must be an object")
        self._decode_struct(parsed, target)
        return target

    def _decode_struct(self, obj: dict, struct: Any) -> None:
        name = struct.descr.name
        by_name = {descr.name: descr for descr in struct.descr.fields}
        for key, val in obj.items():
            descr = by_name.get(key)
            if descr is None:
                if self.allow_unknown:
                    continue
                raise ValueError(f"received field {key!r} in Struct {name!r} we don't know")
            try:
                self._decode_field(struct, descr, val)
            except (ValueError, TypeError) as exc:
                raise ValueError(f"received field {key!r} in Struct {name!r}, {exc}") from exc

    @staticmethod
    def _enum_value(descr: Any, val: Any) -> int:
        if isinstance(val, str) and descr.is_enum:
            found = descr.enum_group.by_name(val)
            if found is None:
                raise ValueError(f"{val!r} is not a known enum name")
            return found.number
        return _to_int(val)

    def _decode_field(self, struct: Any, descr: Any, val: Any) -> None:
        ft = descr.type
        if ft == FieldType.BOOL:
            if not isinstance(val, bool):
                raise ValueError(f"contained {val!r}, not a bool")
            value = value_of_bool(val)
        elif ft in _SIGNED or ft in _UNSIGNED:
            value = value_of_number(_to_int(val), ft)
        elif ft in _ENUM_SCALARS:
            number = self._enum_value(descr, val)
            if descr.is_enum:
                value = value_of_enum(number, descr.enum_group, ft)
            else:
                value = value_of_number(number, ft)
        elif ft in (FieldType.FLOAT32, FieldType.FLOAT64):
            value = value_of_number(_to_float(val), ft)
        elif ft == FieldType.BYTES:
            value = value_of_bytes(_from_b64(val))
        elif ft == FieldType.STRING:
            if not isinstance(val, str):
                raise ValueError("wasn't expected string")
            value = value_of_string(val)
        elif ft == FieldType.STRUCT:
            if not isinstance(val, dict):
                raise ValueError("wasn't expected Struct")
            value = struct.new_field(descr)
            self._decode_struct(val, value.as_struct())
            value = value_of_struct(value.as_struct())
        elif ft == FieldType.LIST_BOOLS:
            items = _as_list(val, "list of bools")
            if not all(isinstance(item, bool) for item in items):
                raise ValueError("wasn't expected list of bools")
            value = value_of_list(list_from(items, ft))
        elif ft in _INT_LISTS:
            items = [_to_int(item) for item in _as_list(val, "list of numbers")]
            value = value_of_list(list_from(items, ft))
        elif ft in _ENUM_LISTS:
            items = [self._enum_value(descr, item) for item in _as_list(val, "list of numbers")]
            value = value_of_list(list_from(items, ft))
        elif ft in _FLOAT_LISTS:
            items = [_to_float(item) for item in _as_list(val, "list of numbers")]
            value = value_of_list(list_from(items, ft))
        elif ft == FieldType.LIST_BYTES:
            items = [_from_b64(item) for item in _as_list(val, "list of bytes")]
            value = value_of_list(list_from(items, ft))
        elif ft == FieldType.LIST_STRINGS:
            items = _as_list(val, "list of strings")
            if not all(isinstance(item, str) for item in items):
                raise ValueError("wasn't expected list of strings")
            value = value_of_list(list_from(items, ft))
        elif ft == FieldType.LIST_STRUCTS:
            items = _as_list(val, "list of Structs")
            value = struct.new_field(descr)
            target = value.as_list()
            for item in items:
                if not isinstance(item, dict):
                    raise ValueError("wasn't expected list of Structs")
                sub = target.new()
                self._decode_struct(item, sub)
                target.append(value_of_struct(sub))
        else:
            raise ValueError(f"problem: encountered unsupported field type: {ft}")
        struct.set(descr, value)