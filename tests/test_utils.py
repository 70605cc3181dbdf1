import pytest

from utils import Hex_to_Int, ascii_preview, be16, format_can_id, parse_bracket_bytes, parse_long_hex


def test_hex_to_int() -> None:
    assert Hex_to_Int("0x8") == 8
    assert Hex_to_Int("7E0") == 0x7E0
    assert Hex_to_Int(16) == 16
    with pytest.raises(ValueError):
        Hex_to_Int("zz")


def test_parse_bracket_bytes() -> None:
    assert parse_bracket_bytes("TX -> [00,00,07,D0,22, F1 ,88]") == bytes.fromhex("000007D022F188")
    assert parse_bracket_bytes("[1FF,xx,0A,]") == b"\x0A"
    assert parse_bracket_bytes("[]") is None
    assert parse_bracket_bytes("no list here") is None


def test_parse_long_hex() -> None:
    assert parse_long_hex("0x22F18800") == bytes.fromhex("22F18800")
    assert parse_long_hex("22F188") is None
    assert parse_long_hex("22F1880") is None


def test_small_helpers() -> None:
    assert be16(b"\x62\xF1\x90", 1) == 0xF190
    assert format_can_id(0x7E8) == "0x7E8"
    assert format_can_id(0x18DAF110) == "0x18DAF110"
    assert ascii_preview(b"AB\x00C", limit=3) == "AB."
