# uds_frame.py
import config
import utils
from models import UdsFrame, UdsNegativeResponse, UdsOther, UdsPositiveResponse, UdsRequest
from uds_lookup import DEFAULT_LOOKUP, UdsLookup


def parse_frame(payload: bytes, lookup: UdsLookup = DEFAULT_LOOKUP) -> UdsFrame:
    """
    Classify one reassembled UDS payload.

    Request:           22 DIDhi DIDlo
    Negative response: 7F <origSID> <NRC> [DIDhi DIDlo]
    Positive response: <SID+0x40> [DIDhi DIDlo] data...
    Anything else is returned as UdsOther; this never fails on content.
    """
    if len(payload) == 0:
        raise ValueError("parse_frame() needs at least one byte")
    payload = bytes(payload)
    sid = payload[0]

    if sid == config.SID_READ_DATA_BY_ID and len(payload) >= 3:
        did = utils.be16(payload, 1)
        return UdsRequest(service_id=sid, service_name=lookup.service_name(sid), payload=payload,
                          did=did, did_name=lookup.did_name(did))

    if sid == config.SID_NEGATIVE_RESPONSE and len(payload) >= 3:
        orig_sid, nrc = payload[1], payload[2]
        did = None
        if orig_sid in config.DID_SERVICES and len(payload) >= 5:
            did = utils.be16(payload, 3)
        return UdsNegativeResponse(original_service_id=orig_sid, service_name=lookup.service_name(orig_sid),
                                   nrc=nrc, nrc_name=lookup.nrc_meaning(nrc), payload=payload,
                                   did=did, did_name=lookup.did_name(did) if did is not None else None)

    if sid >= config.POSITIVE_RESPONSE_OFFSET and sid != config.SID_NEGATIVE_RESPONSE:
        req_sid = sid - config.POSITIVE_RESPONSE_OFFSET
        name = lookup.service_name(req_sid)
        if req_sid in config.DID_SERVICES and len(payload) >= 3:
            did = utils.be16(payload, 1)
            return UdsPositiveResponse(service_id=sid, service_name=name, payload=payload,
                                       data=payload[3:], did=did, did_name=lookup.did_name(did))
        return UdsPositiveResponse(service_id=sid, service_name=name, payload=payload, data=payload[1:])

    return UdsOther(service_id=sid, service_name=lookup.service_name(sid), payload=payload)
