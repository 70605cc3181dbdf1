# transport.py
import can
import isotp
import time
from collections import deque
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple
import config


class LoopbackTransport:
    """
    Tester <-> ECU ISO-TP link kept entirely in memory.

    Both ends are real can-isotp stacks, so payloads are segmented exactly as
    on a bus (padding, first/consecutive frames, flow control). Every CAN
    frame written by either end is recorded in `frames` as a can.Message,
    stamped with a synthetic clock, which makes the result usable as a
    capture for the decoder.
    """

    MAX_PROCESS_ROUNDS = 10000

    def __init__(self, params: Optional[dict] = None, start_time: float = 0.0, frame_gap: float = 0.001):
        self.params = dict(config.DEFAULT_PARAMS if params is None else params)
        self.clock = start_time
        self.frame_gap = frame_gap
        self.frames: List[can.Message] = []
        self._tester_ids = set()
        self._rx_queues: Dict[int, deque] = {}
        self._stacks: Dict[Tuple[int, int], isotp.TransportLayerLogic] = {}

    def txfn(self, iso_msg: isotp.CanMessage) -> None:
        self.clock += self.frame_gap
        msg = can.Message(timestamp=self.clock, arbitration_id=iso_msg.arbitration_id, data=iso_msg.data,
                          dlc=iso_msg.dlc, is_extended_id=False,
                          is_rx=iso_msg.arbitration_id not in self._tester_ids)
        self.frames.append(msg)
        if iso_msg.arbitration_id in self._rx_queues:
            self._rx_queues[iso_msg.arbitration_id].append(
                isotp.CanMessage(arbitration_id=iso_msg.arbitration_id, dlc=iso_msg.dlc, data=iso_msg.data)
            )

    def _make_rxfn(self, for_rxid: int):
        def _rxfn(timeout: float = 0.0):
            q = self._rx_queues[for_rxid]
            return q.popleft() if q else None

        return _rxfn

    def get_stack(self, txid: int, rxid: int) -> isotp.TransportLayerLogic:
        key = (txid, rxid)
        if key in self._stacks: return self._stacks[key]
        if rxid not in self._rx_queues: self._rx_queues[rxid] = deque()

        addr = isotp.Address(isotp.AddressingMode.Normal_11bits, txid=txid, rxid=rxid)
        stack = isotp.TransportLayerLogic(rxfn=self._make_rxfn(rxid), txfn=self.txfn, address=addr,
                                          params=self.params)
        self._stacks[key] = stack
        return stack

    def send(self, data: bytes, txid: int, rxid: int) -> bytes:
        """Send `data` from txid to the peer listening on txid; returns what the peer received."""
        sender = self.get_stack(txid, rxid)
        receiver = self.get_stack(rxid, txid)
        sender.send(bytes(data))
        for _ in range(self.MAX_PROCESS_ROUNDS):
            sender.process()
            receiver.process()
            if receiver.available():
                return bytes(receiver.recv())
        raise RuntimeError(f"ISO-TP transfer 0x{txid:03X} -> 0x{rxid:03X} did not complete")

    def exchange(self, request: bytes, response: Optional[bytes] = None,
                 txid: int = config.ID_ECU_PHYSICAL, rxid: int = config.ID_ECU_RESPONSE,
                 response_delay: float = 0.05) -> None:
        """Tester sends `request` on txid; the ECU answers with `response` on rxid (if given)."""
        self._tester_ids.add(txid)
        self.send(request, txid, rxid)
        if response is None:
            return
        self.clock += response_delay
        self.send(response, rxid, txid)

    def pause(self, seconds: float) -> None:
        self.clock += seconds


# (request, response or None, tester id, ECU id)
SAMPLE_EXCHANGES: Sequence[Tuple[bytes, Optional[bytes], int, int]] = (
    (bytes([0x10, 0x03]), bytes([0x50, 0x03, 0x00, 0x32, 0x01, 0xF4]),
     config.ID_ECU_PHYSICAL, config.ID_ECU_RESPONSE),
    (bytes([0x22, 0xF1, 0x90]), bytes([0x62, 0xF1, 0x90]) + b"WP0ZX41S100893123",
     config.ID_ECU_PHYSICAL, config.ID_ECU_RESPONSE),
    (bytes([0x22, 0xF1, 0x8C]), bytes([0x7F, 0x22, 0x31]),
     config.ID_ECU_PHYSICAL, config.ID_ECU_RESPONSE),
    (bytes([0x27, 0x01]), bytes([0x67, 0x01, 0x11, 0x22, 0x33, 0x44]),
     config.ID_ECU_PHYSICAL, config.ID_ECU_RESPONSE),
    (bytes([0x2E, 0xF1, 0xA0]) + bytes(range(0x10, 0x24)), bytes([0x6E, 0xF1, 0xA0]),
     config.ID_ECU_PHYSICAL, config.ID_ECU_RESPONSE),
    (bytes([0x22, 0xF1, 0x88]), bytes([0x62, 0xF1, 0x88]) + b"VERSION1",
     config.ID_APIM_PHYSICAL, config.ID_APIM_RESPONSE),
    (bytes([0x3E, 0x00]), None,
     config.ID_ECU_PHYSICAL, config.ID_ECU_RESPONSE),
)


def build_sample_capture(exchanges: Iterable[Tuple[bytes, Optional[bytes], int, int]] = SAMPLE_EXCHANGES,
                         start_time: float = 0.0, gap: float = 0.2) -> List[can.Message]:
    link = LoopbackTransport(start_time=start_time)
    for request, response, txid, rxid in exchanges:
        link.exchange(request, response, txid=txid, rxid=rxid)
        link.pause(gap)
    return link.frames


# ---------------- Live bus / log files ----------------

def open_bus(channel: str = config.CAN_CHANNEL, interface: str = config.CAN_INTERFACE) -> can.BusABC:
    return can.Bus(channel=channel, interface=interface)


def capture_bus(bus: can.BusABC, duration: float, max_frames: Optional[int] = None) -> Iterator[can.Message]:
    """Yield frames from `bus` for up to `duration` seconds (or until `max_frames` were read)."""
    end = time.time() + duration
    count = 0
    while True:
        left = end - time.time()
        if left <= 0: return
        msg = bus.recv(timeout=left)
        if msg is None: return
        yield msg
        count += 1
        if max_frames is not None and count >= max_frames: return


def save_log(messages: Iterable[can.Message], path: str) -> int:
    """Write frames with python-can's logger (format picked from the file suffix)."""
    n = 0
    with can.Logger(path) as writer:
        for msg in messages:
            writer.on_message_received(msg)
            n += 1
    return n
