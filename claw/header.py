"""The 8-byte header that precedes every encoded Struct and field."""

from __future__ import annotations

from dataclasses import dataclass

HEADER_SIZE = 8
MAX_DATA_SIZE = 1099511627775
_MAX_FIELD_NUM = 0xFFFF
_MAX_FIELD_TYPE = 0xFF


@dataclass
class Header:
    """A generic header.

    The layout, little endian, is a 16-bit field number, an 8-bit field type
    and 40 final bits that usually hold a size or an item count.
    """

    field_num: int = 0
    field_type: int = 0
    final40: int = 0

    def __post_init__(self) -> None:
        self._check()

    def _check(self) -> None:
        if not 0 <= self.field_num <= _MAX_FIELD_NUM:
            raise ValueError(f"field number {self.field_num} does not fit in 16 bits")
        if not 0 <= int(self.field_type) <= _MAX_FIELD_TYPE:
            raise ValueError(f"field type {self.field_type} does not fit in 8 bits")
        if not 0 <= self.final40 <= MAX_DATA_SIZE:
            raise ValueError(
                f"can't put {self.final40} in a 40bit register, "
                f"max value is {MAX_DATA_SIZE}"
            )

    @classmethod
    def from_bytes(cls, data: bytes) -> "Header":
        """Read a header from the first 8 bytes of ``data``."""
        if len(data) < HEADER_SIZE:
            raise ValueError(
                f"a header is always {HEADER_SIZE} bytes, got {len(data)}"
            )
        raw = int.from_bytes(bytes(data[:HEADER_SIZE]), "little")
        return cls(
            field_num=raw & _MAX_FIELD_NUM,
            field_type=(raw >> 16) & _MAX_FIELD_TYPE,
            final40=raw >> 24,
        )

    def to_bytes(self) -> bytes:
        """Return the 8-byte wire form of the header."""
        self._check()
        raw = self.field_num | (int(self.field_type) << 16) | (self.final40 << 24)
        return raw.to_bytes(HEADER_SIZE, "little")

    def __bytes__(self) -> bytes:
        return self.to_bytes()