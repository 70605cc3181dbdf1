import pytest

from models import UdsNegativeResponse, UdsOther, UdsPositiveResponse, UdsRequest
from uds_frame import parse_frame
from uds_lookup import UNKNOWN, UdsLookup


def test_read_did_request() -> None:
    frame = parse_frame(bytes([0x22, 0xF1, 0x90]))
    assert isinstance(frame, UdsRequest)
    assert frame.service_id == 0x22
    assert frame.service_name == "ReadDataByIdentifier"
    assert frame.did == 0xF190
    assert frame.did_name == "VIN"


def test_short_read_did_is_other() -> None:
    frame = parse_frame(bytes([0x22, 0xF1]))
    assert isinstance(frame, UdsOther)
    assert frame.service_id == 0x22


def test_negative_response_plain() -> None:
    frame = parse_frame(bytes([0x7F, 0x27, 0x35]))
    assert isinstance(frame, UdsNegativeResponse)
    assert frame.original_service_id == 0x27
    assert frame.nrc == 0x35
    assert frame.nrc_name == "invalidKey"
    assert frame.did is None


def test_negative_response_with_did_for_did_services() -> None:
    for sid in (0x22, 0x2E, 0x2F):
        frame = parse_frame(bytes([0x7F, sid, 0x31, 0xF1, 0x8C]))
        assert isinstance(frame, UdsNegativeResponse)
        assert frame.did == 0xF18C

    # 0x31 is not DID-bearing: trailing bytes are ignored
    frame = parse_frame(bytes([0x7F, 0x31, 0x31, 0x12, 0x34]))
    assert frame.did is None


def test_positive_response_read_did() -> None:
    frame = parse_frame(bytes([0x62, 0xF1, 0x88]) + b"VERSION1")
    assert isinstance(frame, UdsPositiveResponse)
    assert frame.service_id == 0x62
    assert frame.request_service_id == 0x22
    assert frame.service_name == "ReadDataByIdentifier"
    assert frame.did == 0xF188
    assert frame.data == b"VERSION1"


def test_positive_response_did_without_data() -> None:
    frame = parse_frame(bytes([0x6E, 0xF1, 0xA0]))
    assert frame.did == 0xF1A0
    assert frame.data == b""


def test_positive_response_non_did_service() -> None:
    frame = parse_frame(bytes([0x67, 0x01, 0xAA, 0xBB]))
    assert isinstance(frame, UdsPositiveResponse)
    assert frame.request_service_id == 0x27
    assert frame.did is None
    assert frame.data == bytes([0x01, 0xAA, 0xBB])


def test_short_negative_response_is_other() -> None:
    frame = parse_frame(bytes([0x7F, 0x22]))
    assert isinstance(frame, UdsOther)
    assert frame.service_id == 0x7F


def test_other_requests_and_unknown_names() -> None:
    frame = parse_frame(bytes([0x10, 0x03]))
    assert isinstance(frame, UdsOther)
    assert frame.service_name == "DiagnosticSessionControl"

    frame = parse_frame(bytes([0x01]))
    assert isinstance(frame, UdsOther)
    assert frame.service_name == UNKNOWN


def test_substituted_tables() -> None:
    lookup = UdsLookup(services={0x22: "RDBI"}, nrcs={}, dids={0xF190: "VehicleIdentificationNumber"})
    req = parse_frame(bytes([0x22, 0xF1, 0x90]), lookup)
    assert req.service_name == "RDBI"
    assert req.did_name == "VehicleIdentificationNumber"

    neg = parse_frame(bytes([0x7F, 0x22, 0x78]), lookup)
    assert neg.nrc_name == UNKNOWN


def test_empty_payload_is_rejected() -> None:
    with pytest.raises(ValueError):
        parse_frame(b"")
