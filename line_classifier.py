# line_classifier.py
# Turns raw log input into RawRecord sequences.
#
# Two sources are supported:
# - text logs in the "ISO15765 TX -> [00,00,07,D0,22,F1,88]" style, one
#   record per line (classify_record / records_from_lines)
#   Diagnostic XML DID lines keep the DID and the decoded response bytes.
# - anything python-can can read or capture (records_from_messages / read_log)
#
# Line numbers are preserved from the source (1-based) since the
# reassembler's staleness rule depends on them.

import os
import re
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

import can

import config
import utils
from models import Direction, LineKind, RawRecord

_TS_PREFIX = re.compile(r"^(?P<ts>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d{1,6})?)\s+(?P<rest>.*)$")
_XML_DID = re.compile(r'didValue="([0-9A-Fa-f]{1,4})"')
_XML_RESPONSE = re.compile(r"<ns3:Response>(.*?)</ns3:Response>|<Response>(.*?)</Response>")


def classify_record(line_number: int, raw_text: str) -> RawRecord:
    if raw_text is None or not raw_text.strip():
        return RawRecord(line_number=line_number, kind=LineKind.UNKNOWN, text=raw_text or "")

    raw_text = raw_text.rstrip("\r\n")
    timestamp, content = _split_timestamp(raw_text)
    kind = _classify_content(content)

    if kind is LineKind.XML:
        did, payload = _parse_xml_did(content)
        return RawRecord(line_number=line_number, timestamp=timestamp, payload=payload,
                         kind=kind, text=content, did=did)
    if kind is not LineKind.ISO15765:
        return RawRecord(line_number=line_number, timestamp=timestamp, kind=kind, text=content)

    can_id, payload = _split_header(utils.parse_bracket_bytes(content))
    return RawRecord(
        line_number=line_number,
        direction=_detect_direction(content),
        can_id=can_id,
        timestamp=timestamp,
        payload=payload,
        kind=kind,
        text=content,
    )


def records_from_lines(lines: Iterable[str], first_line: int = 1) -> List[RawRecord]:
    return [classify_record(n, line) for n, line in enumerate(lines, start=first_line)]


def records_from_messages(messages: Iterable[can.Message], first_line: int = 1) -> List[RawRecord]:
    """One record per CAN frame; the arbitration id replaces the 4-byte header."""
    out = []
    for n, msg in enumerate(messages, start=first_line):
        if msg.is_error_frame or msg.is_remote_frame:
            out.append(RawRecord(line_number=n, kind=LineKind.UNKNOWN, text=str(msg)))
            continue
        out.append(RawRecord(
            line_number=n,
            direction=Direction.RX if msg.is_rx else Direction.TX,
            can_id=msg.arbitration_id,
            timestamp=_from_epoch(msg.timestamp),
            payload=bytes(msg.data),
            kind=LineKind.ISO15765,
            text=str(msg),
        ))
    return out


def read_log(path: str) -> List[RawRecord]:
    """Load a text log, or a python-can log (.asc, .blf, .csv, .trc, ...)."""
    if os.path.splitext(path)[1].lower() in config.CAN_LOG_SUFFIXES:
        return records_from_messages(can.LogReader(path))
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return records_from_lines(f)


# ---------------- helpers ----------------

def _split_timestamp(text: str) -> Tuple[Optional[datetime], str]:
    m = _TS_PREFIX.match(text)
    if not m:
        return None, text
    ts = m.group("ts")
    if "." in ts:
        head, frac = ts.split(".")
        ts = f"{head}.{frac.ljust(6, '0')}"
    try:
        return datetime.fromisoformat(ts), m.group("rest")
    except ValueError:
        return None, text


def _classify_content(content: str) -> LineKind:
    if ("<" in content and "didValue=" in content) or "<ns" in content:
        return LineKind.XML
    if "iso15765" in content.lower():
        return LineKind.ISO15765
    if utils.parse_bracket_bytes(content) is not None or utils.parse_long_hex(content) is not None:
        return LineKind.HEX

    printable = sum(1 for c in content if 32 <= ord(c) <= 126)
    if printable * 100 >= len(content) * 80 and "[" not in content:
        return LineKind.ASCII
    return LineKind.UNKNOWN


def _parse_xml_did(content: str) -> Tuple[Optional[int], bytes]:
    """
    Pull the DID and response bytes out of a diagnostic XML line, e.g.
    <ns3:didValue didValue="F188" ...><ns3:Response>4D59...</ns3:Response>

    A zero or missing DID counts as absent. Non-hex response text gives no bytes.
    """
    m = _XML_DID.search(content)
    did = int(m.group(1), 16) if m else None

    data = b""
    r = _XML_RESPONSE.search(content)
    if r:
        text = (r.group(1) if r.group(1) is not None else r.group(2)).strip()
        if len(text) % 2 == 0 and re.fullmatch(r"[0-9A-Fa-f]*", text):
            data = bytes.fromhex(text)
    return did or None, data


def _detect_direction(content: str) -> Direction:
    upper = content.upper()
    if " TX " in upper or "->" in content:
        return Direction.TX
    if " RX " in upper or "<-" in content:
        return Direction.RX
    return Direction.UNKNOWN


def _split_header(all_bytes: Optional[bytes]) -> Tuple[Optional[int], bytes]:
    """
    First 4 bytes are the address header.
    00 00 07 D0 -> 0x7D0 (11-bit id kept in the low two bytes), otherwise
    the whole 32-bit value is the id.
    """
    if not all_bytes or len(all_bytes) < 4:
        return None, b""
    if all_bytes[0] == 0x00 and all_bytes[1] == 0x00:
        can_id = utils.be16(all_bytes, 2)
    else:
        can_id = int.from_bytes(all_bytes[:4], "big")
    return can_id, all_bytes[4:]


def _from_epoch(ts: float) -> Optional[datetime]:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).replace(tzinfo=None)
