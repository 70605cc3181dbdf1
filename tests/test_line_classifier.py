from datetime import datetime

import can
import pytest

from line_classifier import classify_record, read_log, records_from_lines, records_from_messages
from models import Direction, LineKind


def test_iso15765_tx_line() -> None:
    rec = classify_record(7, "2025-10-21T10:23:45.123 ISO15765 TX -> [00,00,07,D0,22,F1,88]")
    assert rec.kind is LineKind.ISO15765
    assert rec.line_number == 7
    assert rec.direction is Direction.TX
    assert rec.can_id == 0x7D0
    assert rec.payload == bytes([0x22, 0xF1, 0x88])
    assert rec.timestamp == datetime(2025, 10, 21, 10, 23, 45, 123000)
    assert rec.text.startswith("ISO15765")


def test_iso15765_rx_line_without_timestamp() -> None:
    rec = classify_record(1, "ISO15765 RX <- [00,00,07,D8,7F,22,78]")
    assert rec.direction is Direction.RX
    assert rec.timestamp is None
    assert rec.can_id == 0x7D8
    assert rec.payload == bytes([0x7F, 0x22, 0x78])


def test_extended_id_header() -> None:
    rec = classify_record(1, "iso15765 [18,DA,F1,10,02,10,03]")
    assert rec.direction is Direction.UNKNOWN
    assert rec.can_id == 0x18DAF110
    assert rec.payload == bytes([0x02, 0x10, 0x03])


def test_header_only_and_missing_bytes() -> None:
    rec = classify_record(1, "ISO15765 RX <- [00,00,07,D8]")
    assert rec.can_id == 0x7D8
    assert rec.payload == b""

    rec = classify_record(2, "ISO15765 RX <- no payload here")
    assert rec.can_id is None
    assert rec.payload == b""


def test_other_line_kinds() -> None:
    assert classify_record(1, "").kind is LineKind.UNKNOWN
    assert classify_record(2, "   ").kind is LineKind.UNKNOWN
    assert classify_record(3, '<ns0:did didValue="F190">').kind is LineKind.XML
    assert classify_record(4, "[22,F1,90]").kind is LineKind.HEX
    assert classify_record(5, "22F190AABBCC").kind is LineKind.HEX
    assert classify_record(6, "DEBUG session closed").kind is LineKind.ASCII
    assert classify_record(7, "\x01\x02\x03\x04[").kind is LineKind.UNKNOWN


def test_non_iso_lines_carry_no_payload() -> None:
    rec = classify_record(4, "2025-10-21T10:23:45 [22,F1,90]")
    assert rec.kind is LineKind.HEX
    assert rec.payload == b""
    assert rec.timestamp == datetime(2025, 10, 21, 10, 23, 45)


def test_xml_did_line() -> None:
    rec = classify_record(
        6, '<ns3:didValue didValue="F188" type="Strategy"><ns3:Response>4D59535452415445475931</ns3:Response></ns3:didValue>')
    assert rec.kind is LineKind.XML
    assert rec.did == 0xF188
    assert rec.payload == b"MYSTRATEGY1"
    assert rec.can_id is None


def test_xml_line_variants() -> None:
    plain = classify_record(1, '<didValue didValue="806a"><Response>ABCD</Response></didValue>')
    assert (plain.did, plain.payload) == (0x806A, b"\xAB\xCD")

    text = classify_record(2, '<ns3:didValue didValue="F190"><ns3:Response>not hex</ns3:Response>')
    assert (text.did, text.payload) == (0xF190, b"")

    no_did = classify_record(3, '<ns3:didValue didValue="0000"><ns3:Response>00</ns3:Response>')
    assert no_did.did is None
    assert classify_record(4, "<ns3:header/>").did is None


def test_records_from_lines_numbers_from_one() -> None:
    recs = records_from_lines(["ISO15765 TX -> [00,00,07,E0,02,10,03]", "hello"])
    assert [r.line_number for r in recs] == [1, 2]
    assert [r.kind for r in recs] == [LineKind.ISO15765, LineKind.ASCII]


def test_records_from_messages() -> None:
    msgs = [
        can.Message(timestamp=1.5, arbitration_id=0x7E0, data=[0x02, 0x10, 0x03], is_extended_id=False, is_rx=False),
        can.Message(timestamp=1.6, arbitration_id=0x7E8, data=[0x02, 0x50, 0x03], is_extended_id=False, is_rx=True),
        can.Message(timestamp=1.7, is_error_frame=True),
    ]
    recs = records_from_messages(msgs)
    assert [r.direction for r in recs[:2]] == [Direction.TX, Direction.RX]
    assert [r.can_id for r in recs[:2]] == [0x7E0, 0x7E8]
    assert recs[0].payload == bytes([0x02, 0x10, 0x03])
    assert (recs[1].timestamp - recs[0].timestamp).total_seconds() == pytest.approx(0.1)
    assert recs[2].kind is LineKind.UNKNOWN
    assert recs[2].payload == b""


def test_read_text_log(tmp_path) -> None:
    path = tmp_path / "session.txt"
    path.write_text("ISO15765 TX -> [00,00,07,E0,02,10,03]\nISO15765 RX <- [00,00,07,E8,02,50,03]\n")
    recs = read_log(str(path))
    assert [r.can_id for r in recs] == [0x7E0, 0x7E8]
    assert [r.line_number for r in recs] == [1, 2]
