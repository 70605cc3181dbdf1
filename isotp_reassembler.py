# isotp_reassembler.py
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

import config
import utils
from models import Direction, LineKind, Pdu, RawRecord

logger = logging.getLogger(__name__)

StreamKey = Tuple[Direction, Optional[int]]


@dataclass
class _State:
    start_line: int
    last_line: int
    start_time: Optional[datetime]
    last_time: Optional[datetime]
    direction: Direction
    can_id: Optional[int]
    expected_length: int
    next_seq: int = 1
    data: bytearray = field(default_factory=bytearray)


class IsoTpReassembler:
    """
    Rebuilds UDS payloads from per-line ISO-TP frames.

    One reassembly state is kept per (direction, CAN id). A line whose first
    byte is not an ISO-TP PCI (types 0-3) is taken as an already assembled
    payload. Broken sequences (wrong sequence nibble, line/time gaps) are
    dropped without emitting anything.
    """

    def __init__(self, stale_after: float = config.STALE_AFTER_SECONDS):
        self.stale_after = stale_after
        self._states: Dict[StreamKey, _State] = {}
        self._out: List[Pdu] = []

    def feed(self, rec: RawRecord) -> None:
        payload = rec.payload
        if rec.kind is not LineKind.ISO15765 or not payload:
            return

        pci = payload[0]
        frame_type = (pci >> 4) & 0xF

        if frame_type > config.PCI_FLOW_CONTROL:
            self._emit_single(rec, bytes(payload))
            return

        key = (rec.direction, rec.can_id)
        self._drop_if_stale(key, rec)

        if frame_type == config.PCI_SINGLE_FRAME:
            length = pci & 0xF
            self._emit_single(rec, bytes(payload[1:1 + length]))
            self._states.pop(key, None)
        elif frame_type == config.PCI_FIRST_FRAME:
            self._first_frame(key, rec)
        elif frame_type == config.PCI_CONSECUTIVE_FRAME:
            self._consecutive_frame(key, rec)
        # Flow control frames carry no payload data

    def pdus(self) -> List[Pdu]:
        return list(self._out)

    def _drop_if_stale(self, key: StreamKey, rec: RawRecord) -> None:
        st = self._states.get(key)
        if st is None:
            return
        stale = rec.line_number <= st.last_line
        if not stale and rec.timestamp is not None and st.last_time is not None:
            stale = (rec.timestamp - st.last_time).total_seconds() > self.stale_after
        if stale:
            logger.debug("dropping stale reassembly %s %s from line %d (%d/%d bytes)",
                         key[0].value, utils.format_can_id(key[1]), st.start_line, len(st.data), st.expected_length)
            del self._states[key]

    def _first_frame(self, key: StreamKey, rec: RawRecord) -> None:
        payload = rec.payload
        if len(payload) < 2:
            logger.debug("line %d: first frame too short", rec.line_number)
            return
        if key in self._states:
            logger.debug("line %d: first frame replaces unfinished reassembly", rec.line_number)
        self._states[key] = _State(
            start_line=rec.line_number,
            last_line=rec.line_number,
            start_time=rec.timestamp,
            last_time=rec.timestamp,
            direction=rec.direction,
            can_id=rec.can_id,
            expected_length=((payload[0] & 0xF) << 8) | payload[1],
            data=bytearray(payload[2:]),
        )

    def _consecutive_frame(self, key: StreamKey, rec: RawRecord) -> None:
        st = self._states.get(key)
        if st is None:
            return

        seq = rec.payload[0] & 0xF
        if seq != (st.next_seq & 0xF):
            logger.debug("line %d: sequence 0x%X, expected 0x%X; dropping reassembly from line %d",
                         rec.line_number, seq, st.next_seq & 0xF, st.start_line)
            del self._states[key]
            return

        st.next_seq += 1
        st.last_line = rec.line_number
        st.last_time = rec.timestamp
        st.data.extend(rec.payload[1:])

        if len(st.data) >= st.expected_length:
            self._out.append(Pdu(
                start_line=st.start_line,
                end_line=st.last_line,
                start_time=st.start_time,
                end_time=st.last_time,
                direction=st.direction,
                can_id=st.can_id,
                payload=bytes(st.data[:st.expected_length]),
            ))
            del self._states[key]

    def _emit_single(self, rec: RawRecord, data: bytes) -> None:
        self._out.append(Pdu(
            start_line=rec.line_number,
            end_line=rec.line_number,
            start_time=rec.timestamp,
            end_time=rec.timestamp,
            direction=rec.direction,
            can_id=rec.can_id,
            payload=data,
        ))


def reassemble(records: Iterable[RawRecord], stale_after: float = config.STALE_AFTER_SECONDS) -> List[Pdu]:
    r = IsoTpReassembler(stale_after=stale_after)
    for rec in records:
        r.feed(rec)
    return r.pdus()
