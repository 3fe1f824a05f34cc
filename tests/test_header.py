import pytest

from claw.header import HEADER_SIZE, MAX_DATA_SIZE, Header


def test_default_header_is_zero_bytes():
    assert Header().to_bytes() == bytes(8)


def test_layout_is_little_endian():
    data = Header(field_num=0x0102, field_type=3, final40=0).to_bytes()
    assert data == b"\x02\x01\x03\x00\x00\x00\x00\x00"


def test_final40_starts_at_fourth_byte():
    data = Header(final40=1).to_bytes()
    assert data[3] == 1
    assert data[:3] == b"\x00\x00\x00"


@pytest.mark.parametrize(
    "field_num,field_type,final40",
    [(0, 0, 0), (65535, 255, MAX_DATA_SIZE), (7, 12, 4096), (1, 1, 1)],
)
def test_round_trip(field_num, field_type, final40):
    h = Header(field_num=field_num, field_type=field_type, final40=final40)
    data = h.to_bytes()
    assert len(data) == HEADER_SIZE
    assert Header.from_bytes(data) == h


def test_max_final40_fills_top_bytes():
    data = Header(final40=MAX_DATA_SIZE).to_bytes()
    assert data[3:] == b"\xff" * 5


def test_from_bytes_ignores_extra_bytes():
    h = Header(field_num=4, field_type=2, final40=9)
    assert Header.from_bytes(h.to_bytes() + b"extra") == h


def test_from_bytes_rejects_short_input():
    with pytest.raises(ValueError):
        Header.from_bytes(bytes(7))


def test_final40_overflow_rejected():
    with pytest.raises(ValueError):
        Header(final40=MAX_DATA_SIZE + 1)


def test_overflow_after_mutation_rejected_on_encode():
    h = Header()
    h.final40 = MAX_DATA_SIZE + 1
    with pytest.raises(ValueError):
        h.to_bytes()


@pytest.mark.parametrize("kwargs", [{"field_num": 65536}, {"field_num": -1}, {"field_type": 256}])
def test_out_of_range_fields_rejected(kwargs):
    with pytest.raises(ValueError):
        Header(**kwargs)


def test_bytes_protocol_matches_to_bytes():
    h = Header(field_num=3, field_type=5, final40=16)
    assert bytes(h) == h.to_bytes()