# models.py
# Records passed between the decoding stages.
#
# RawRecord -> (isotp_reassembler) -> Pdu -> (uds_frame) -> UdsFrame
#           -> (conversation) -> Transaction

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Union


class Direction(Enum):
    TX = "TX"
    RX = "RX"
    UNKNOWN = "UNK"


class LineKind(Enum):
    ISO15765 = "ISO15765"
    HEX = "HEX"
    ASCII = "ASCII"
    XML = "XML"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class RawRecord:
    """One log line with its 4-byte address header split off."""

    line_number: int
    direction: Direction = Direction.UNKNOWN
    can_id: Optional[int] = None
    timestamp: Optional[datetime] = None
    payload: bytes = b""
    kind: LineKind = LineKind.ISO15765
    text: str = ""
    did: Optional[int] = None     # XML lines: didValue attribute


@dataclass(frozen=True)
class Pdu:
    """A fully reassembled UDS payload (no PCI bytes)."""

    start_line: int
    end_line: int
    start_time: Optional[datetime]
    end_time: Optional[datetime]
    direction: Direction
    can_id: Optional[int]
    payload: bytes

    def __str__(self) -> str:
        can = f"0x{self.can_id:03X}" if self.can_id is not None else "----"
        return f"{self.direction.value} {can} Lines {self.start_line}-{self.end_line} Len={len(self.payload)}"


# ---------------- UDS frames ----------------

@dataclass(frozen=True)
class UdsRequest:
    service_id: int
    service_name: str
    payload: bytes
    did: Optional[int] = None
    did_name: Optional[str] = None


@dataclass(frozen=True)
class UdsPositiveResponse:
    service_id: int           # response SID as seen on the wire (request SID + 0x40)
    service_name: str         # name of the request service
    payload: bytes
    data: bytes = b""
    did: Optional[int] = None
    did_name: Optional[str] = None

    @property
    def request_service_id(self) -> int:
        return self.service_id - 0x40


@dataclass(frozen=True)
class UdsNegativeResponse:
    original_service_id: int
    service_name: str
    nrc: int
    nrc_name: str
    payload: bytes
    did: Optional[int] = None
    did_name: Optional[str] = None


@dataclass(frozen=True)
class UdsOther:
    service_id: int
    service_name: str
    payload: bytes


UdsFrame = Union[UdsRequest, UdsPositiveResponse, UdsNegativeResponse, UdsOther]


# ---------------- Transactions ----------------

@dataclass
class Transaction:
    """
    A request paired with its response.

    Opened when a request is seen, closed once when a response matches.
    Orphan responses have no request side (request_line is None); requests
    that never see a response keep response_line as None.
    """

    service_id: int
    request_line: Optional[int] = None
    request_time: Optional[datetime] = None
    request_can_id: Optional[int] = None
    request_payload: bytes = b""
    did: Optional[int] = None

    response_line: Optional[int] = None
    response_time: Optional[datetime] = None
    response_can_id: Optional[int] = None
    response_payload: bytes = b""
    response_data: bytes = b""
    positive_service_id: Optional[int] = None
    nrc: Optional[int] = None
    latency: Optional[timedelta] = None

    @property
    def is_negative(self) -> bool:
        return self.nrc is not None

    @property
    def is_complete(self) -> bool:
        return self.response_line is not None

    @property
    def is_orphan(self) -> bool:
        return self.request_line is None

    @property
    def latency_ms(self) -> Optional[float]:
        if self.latency is None: return None
        return self.latency / timedelta(milliseconds=1)
