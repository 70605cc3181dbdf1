# conversation.py
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

import config
from models import Pdu, Transaction, UdsNegativeResponse, UdsPositiveResponse
from uds_frame import parse_frame
from uds_lookup import DEFAULT_LOOKUP, UdsLookup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchPolicy:
    """
    Knobs for request/response correlation.

    response_id_offset: response CAN id = request CAN id + offset
                        (0x7E0 -> 0x7E8 on most 11-bit physical addressing)
    window_seconds:     max |response start - request start| for passes 1 and 2
    max_open:           open requests kept before the oldest are evicted
    """

    response_id_offset: int = config.RESPONSE_ID_OFFSET
    window_seconds: float = config.MATCH_WINDOW_SECONDS
    max_open: int = config.MAX_OPEN_REQUESTS

    def __post_init__(self):
        if self.window_seconds < 0:
            raise ValueError("window_seconds must be >= 0")
        if self.max_open <= 0:
            raise ValueError("max_open must be > 0")

    def can_ids_pair(self, request_can_id: Optional[int], response_can_id: Optional[int]) -> bool:
        if request_can_id is None or response_can_id is None:
            return False
        return response_can_id in (request_can_id + self.response_id_offset, request_can_id)

    def within_window(self, request_time: Optional[datetime], response_time: Optional[datetime]) -> bool:
        # Missing timestamps never disqualify a candidate
        if request_time is None or response_time is None:
            return True
        return abs((response_time - request_time).total_seconds()) <= self.window_seconds


DEFAULT_POLICY = MatchPolicy()


class ConversationBuilder:
    def __init__(self, lookup: UdsLookup = DEFAULT_LOOKUP, policy: MatchPolicy = DEFAULT_POLICY):
        self.lookup = lookup
        self.policy = policy
        self._open: List[Transaction] = []
        self._done: List[Transaction] = []

    def feed(self, pdu: Pdu) -> None:
        if not pdu.payload:
            return
        frame = parse_frame(pdu.payload, self.lookup)

        if isinstance(frame, UdsNegativeResponse):
            self._close(pdu, frame.original_service_id, frame.did, nrc=frame.nrc)
        elif isinstance(frame, UdsPositiveResponse):
            self._close(pdu, frame.request_service_id, frame.did,
                        positive_sid=frame.service_id, data=frame.data)
        else:
            self._open_request(pdu, frame.service_id, getattr(frame, "did", None))

    def finish(self) -> List[Transaction]:
        """Closed/orphaned/evicted transactions in order, then whatever is still open."""
        out = self._done + self._open
        self._done, self._open = [], []
        return out

    def find_match(self, pdu: Pdu, request_sid: int) -> Optional[Transaction]:
        candidates = sorted((t for t in self._open if t.service_id == request_sid),
                            key=lambda t: t.request_line, reverse=True)
        policy = self.policy

        # 1) CAN id pairing and time window
        for t in candidates:
            if policy.can_ids_pair(t.request_can_id, pdu.can_id) and \
                    policy.within_window(t.request_time, pdu.start_time):
                return t

        # 2) time window only
        for t in candidates:
            if policy.within_window(t.request_time, pdu.start_time):
                return t

        # 3) most recent with the same service id
        return candidates[0] if candidates else None

    def _open_request(self, pdu: Pdu, sid: int, did: Optional[int]) -> None:
        self._open.append(Transaction(
            service_id=sid,
            request_line=pdu.start_line,
            request_time=pdu.start_time,
            request_can_id=pdu.can_id,
            request_payload=pdu.payload,
            did=did,
        ))
        while len(self._open) > self.policy.max_open:
            evicted = self._open.pop(0)
            logger.debug("open request list full; evicting SID 0x%02X from line %d",
                         evicted.service_id, evicted.request_line)
            self._done.append(evicted)

    def _close(self, pdu: Pdu, request_sid: int, did: Optional[int],
               nrc: Optional[int] = None, positive_sid: Optional[int] = None, data: bytes = b"") -> None:
        match = self.find_match(pdu, request_sid)
        if match is None:
            logger.debug("line %d: no open request for SID 0x%02X, keeping orphan response",
                         pdu.start_line, request_sid)
            match = Transaction(service_id=request_sid, did=did)
        else:
            self._open = [t for t in self._open if t is not match]
            if match.did is None:
                match.did = did
            if match.request_time is not None and pdu.end_time is not None:
                match.latency = pdu.end_time - match.request_time

        match.response_line = pdu.end_line
        match.response_time = pdu.end_time
        match.response_can_id = pdu.can_id
        match.response_payload = pdu.payload
        match.response_data = data
        match.nrc = nrc
        match.positive_service_id = positive_sid
        self._done.append(match)


def build_transactions(pdus: Iterable[Pdu], lookup: UdsLookup = DEFAULT_LOOKUP,
                       policy: MatchPolicy = DEFAULT_POLICY) -> List[Transaction]:
    builder = ConversationBuilder(lookup, policy)
    for pdu in sorted(pdus, key=lambda p: p.start_line):
        builder.feed(pdu)
    return builder.finish()
