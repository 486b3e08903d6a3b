import pytest

from blehost.uuid import UUID, contains, name, parse, reverse, uuid16

FORWARD = [
    bytes([1, 2, 3, 4, 5, 6]),
    bytes([12, 143, 231, 123, 87, 124, 209]),
    bytes([3, 43, 223, 12, 54]),
]

REVERSE = [
    bytes([6, 5, 4, 3, 2, 1]),
    bytes([209, 124, 87, 123, 231, 143, 12]),
    bytes([54, 12, 223, 43, 3]),
]


@pytest.mark.parametrize("forward, expected", list(zip(FORWARD, REVERSE)))
def test_reverse(forward, expected):
    assert reverse(forward) == expected


def test_reverse_does_not_modify_input():
    data = bytearray([1, 2, 3])
    reverse(data)
    assert data == bytearray([1, 2, 3])


def test_uuid16_is_little_endian():
    assert uuid16(0x1800) == b"\x00\x18"
    assert str(uuid16(0x1800)) == "1800"


def test_parse_short():
    assert parse("1800") == uuid16(0x1800)


def test_parse_long_round_trip():
    text = "34DA3AD1-7110-41A1-B1EF-4430F509CDE7"
    u = parse(text)
    assert len(u) == 16
    assert str(u) == text.replace("-", "").lower()
    assert u[0] == 0xE7


def test_parse_wrong_length():
    with pytest.raises(ValueError, match="length 2 or 16, got 3"):
        parse("180000")


def test_parse_invalid_hex():
    with pytest.raises(ValueError):
        parse("zz18")


def test_parse_odd_length():
    with pytest.raises(ValueError):
        parse("180")


def test_contains():
    u = uuid16(0x180F)
    assert contains(None, u) is True
    assert contains([], u) is False
    assert contains([uuid16(0x1800), u], u) is True
    assert contains([uuid16(0x1800)], u) is False


def test_name_known_and_unknown():
    assert name(uuid16(0x180F)) == "Battery Service"
    assert name(uuid16(0x2902)) == "Client Characteristic Configuration"
    assert name(uuid16(0xABCD)) == ""


def test_uuid_hash_matches_bytes():
    assert {UUID(b"\x00\x18"): 1}[b"\x00\x18"] == 1