# utils.py
import re
from typing import Optional

_LONG_HEX = re.compile(r"^(?:0x)?([0-9A-Fa-f]{2}){4,}$")


def Hex_to_Int(x) -> int:
    if isinstance(x, int): return x
    s = str(x).strip().lower()
    if s.startswith("0x"): s = s[2:]
    return int(s, 16)


def pretty_hex(b: bytes) -> str:
    return " ".join(f"{x:02X}" for x in b)


def be16(data: bytes, offset: int) -> int:
    return (data[offset] << 8) | data[offset + 1]


def parse_bracket_bytes(text: str) -> Optional[bytes]:
    """
    Pull the first "[..]" list out of a log line, e.g. "[00,00,07,D0,22,F1,88]".

    Items are comma separated hex; blank or unparseable items are skipped.
    Returns None when there is no bracket list or it holds no bytes.
    """
    start = text.find("[")
    end = text.find("]", start + 1) if start >= 0 else -1
    if start < 0 or end <= start:
        return None

    out = []
    for part in text[start + 1:end].split(","):
        t = part.strip()
        if not t: continue
        try:
            value = int(t, 16)
        except ValueError:
            continue
        if 0 <= value <= 0xFF:
            out.append(value)
    return bytes(out) if out else None


def parse_long_hex(text: str) -> Optional[bytes]:
    """Parse an unbroken hex string ("22F188...", at least 4 bytes)."""
    s = text.strip().replace(" ", "")
    if not _LONG_HEX.match(s):
        return None
    if s.lower().startswith("0x"): s = s[2:]
    return bytes.fromhex(s)


def format_can_id(can_id: Optional[int]) -> str:
    if can_id is None: return "(none)"
    return f"0x{can_id:08X}" if can_id > 0x7FF else f"0x{can_id:03X}"


def ascii_preview(b: bytes, limit: int = 64) -> str:
    return "".join(chr(x) if 32 <= x <= 126 else "." for x in b[:limit])
