# uds_lookup.py
# Name tables for UDS decoding.
#
# UdsLookup bundles the three tables the frame parser needs (service id ->
# name, NRC -> meaning, DID -> name). Missing keys resolve to UNKNOWN, never
# to a guess. Tables are plain dicts so tests and callers can swap them.

import csv
import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, NamedTuple, Optional

import utils

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"

# ISO 14229-1 service ids
SERVICE_NAMES: Dict[int, str] = {
    0x10: "DiagnosticSessionControl",
    0x11: "ECUReset",
    0x14: "ClearDiagnosticInformation",
    0x19: "ReadDTCInformation",
    0x22: "ReadDataByIdentifier",
    0x23: "ReadMemoryByAddress",
    0x24: "ReadScalingDataByIdentifier",
    0x27: "SecurityAccess",
    0x28: "CommunicationControl",
    0x29: "Authentication",
    0x2A: "ReadDataByPeriodicIdentifier",
    0x2C: "DynamicallyDefineDataIdentifier",
    0x2E: "WriteDataByIdentifier",
    0x2F: "InputOutputControlByIdentifier",
    0x31: "RoutineControl",
    0x34: "RequestDownload",
    0x35: "RequestUpload",
    0x36: "TransferData",
    0x37: "RequestTransferExit",
    0x38: "RequestFileTransfer",
    0x3D: "WriteMemoryByAddress",
    0x3E: "TesterPresent",
    0x83: "AccessTimingParameter",
    0x84: "SecuredDataTransmission",
    0x85: "ControlDTCSetting",
    0x86: "ResponseOnEvent",
    0x87: "LinkControl",
}

# ISO 14229-1 negative response codes
NRC_NAMES: Dict[int, str] = {
    0x10: "generalReject",
    0x11: "serviceNotSupported",
    0x12: "subFunctionNotSupported",
    0x13: "incorrectMessageLengthOrInvalidFormat",
    0x14: "responseTooLong",
    0x21: "busyRepeatRequest",
    0x22: "conditionsNotCorrect",
    0x24: "requestSequenceError",
    0x25: "noResponseFromSubnetComponent",
    0x26: "failurePreventsExecutionOfRequestedAction",
    0x31: "requestOutOfRange",
    0x33: "securityAccessDenied",
    0x35: "invalidKey",
    0x36: "exceededNumberOfAttempts",
    0x37: "requiredTimeDelayNotExpired",
    0x70: "uploadDownloadNotAccepted",
    0x71: "transferDataSuspended",
    0x72: "generalProgrammingFailure",
    0x73: "wrongBlockSequenceCounter",
    0x78: "requestCorrectlyReceivedResponsePending",
    0x7E: "subFunctionNotSupportedInActiveSession",
    0x7F: "serviceNotSupportedInActiveSession",
    0x81: "rpmTooHigh",
    0x82: "rpmTooLow",
    0x83: "engineIsRunning",
    0x84: "engineIsNotRunning",
    0x85: "engineRunTimeTooLow",
    0x86: "temperatureTooHigh",
    0x87: "temperatureTooLow",
    0x88: "vehicleSpeedTooHigh",
    0x89: "vehicleSpeedTooLow",
    0x8A: "throttlePedalTooHigh",
    0x8B: "throttlePedalTooLow",
    0x8C: "transmissionRangeNotInNeutral",
    0x8D: "transmissionRangeNotInGear",
    0x8F: "brakeSwitchNotClosed",
    0x90: "shifterLeverNotInPark",
    0x91: "torqueConverterClutchLocked",
    0x92: "voltageTooHigh",
    0x93: "voltageTooLow",
}

# Common ISO 14229 / OEM identification DIDs
DID_NAMES: Dict[int, str] = {
    0xF180: "BootSoftwareIdentification",
    0xF181: "ApplicationSoftwareIdentification",
    0xF186: "ActiveDiagnosticSession",
    0xF187: "SparePartNumber",
    0xF188: "ECUSoftwareNumber",
    0xF18A: "SystemSupplierIdentifier",
    0xF18C: "ECUSerialNumber",
    0xF190: "VIN",
    0xF191: "ECUHardwareNumber",
    0xF195: "SystemSupplierECUSoftwareVersion",
    0xF197: "SystemName",
    0xF1A0: "ECUProgramFile",
}


@dataclass(frozen=True)
class UdsLookup:
    services: Mapping[int, str] = field(default_factory=lambda: dict(SERVICE_NAMES))
    nrcs: Mapping[int, str] = field(default_factory=lambda: dict(NRC_NAMES))
    dids: Mapping[int, str] = field(default_factory=lambda: dict(DID_NAMES))

    def service_name(self, sid: int) -> str:
        return self.services.get(sid, UNKNOWN)

    def nrc_meaning(self, nrc: int) -> str:
        return self.nrcs.get(nrc, UNKNOWN)

    def did_name(self, did: int) -> str:
        return self.dids.get(did, UNKNOWN)


DEFAULT_LOOKUP = UdsLookup()


def load_did_csv(path: str) -> Dict[int, str]:
    """
    Read a DID table.

    Expected columns: DID_HEX,Type,NameOrCategory,Description
    e.g. "F110,PartNumber,,Part number (data record)".
    Blank lines, "#" comments and rows without a hex DID are skipped.
    Non-empty columns after the DID are joined with " - " to form the name.
    """
    table: Dict[int, str] = {}
    with open(path, newline="") as f:
        for row in csv.reader(f):
            if not row or not row[0].strip() or row[0].strip().startswith("#"):
                continue
            did = _parse_hex_key(row[0], 0xFFFF)
            if did is None:
                logger.debug("skipping DID row %r", row)
                continue
            parts = [c.strip() for c in row[1:4] if c.strip()]
            table[did] = " - ".join(parts) if parts else "DID"
    return table


# ---------------- CAN id -> module ----------------

class ModuleInfo(NamedTuple):
    abbrev: str
    name: str

    def __str__(self) -> str:
        return f"{self.abbrev} - {self.name}"


DEFAULT_MODULES: Dict[int, ModuleInfo] = {
    0x7D0: ModuleInfo("APIM", "Accessory Protocol Interface Module"),
    0x726: ModuleInfo("BCM", "Body Control Module"),
    0x7E0: ModuleInfo("PCM", "Powertrain Control Module"),
    0x730: ModuleInfo("PSCM", "Power Steering Control Module"),
    0x737: ModuleInfo("RCM", "Restraints Control Module"),
    0x716: ModuleInfo("GWM", "Gateway Module A"),
    0x720: ModuleInfo("IPC", "Instrument Panel Cluster"),
    0x754: ModuleInfo("TCU", "Telematic Control Unit Module"),
    0x733: ModuleInfo("HVAC", "Heating, Ventilation, and Air Conditioning Module"),
    0x706: ModuleInfo("IPMA", "Image Processing Module A"),
    0x736: ModuleInfo("PAM", "Parking Assist Control Module"),
    0x724: ModuleInfo("SCCM", "Steering Column Control Module"),
    0x7E2: ModuleInfo("SOBDM", "Secondary On-Board Diagnostic Control Module A"),
    0x7E9: ModuleInfo("TCM", "Transmission Control Module"),
    0x721: ModuleInfo("VDM", "Vehicle Dynamics Control Module"),
}


class ModuleAddressBook:
    def __init__(self, modules: Optional[Mapping[int, ModuleInfo]] = None):
        self._by_can_id: Dict[int, ModuleInfo] = dict(DEFAULT_MODULES if modules is None else modules)

    def __len__(self) -> int:
        return len(self._by_can_id)

    def get(self, can_id: int) -> Optional[ModuleInfo]:
        return self._by_can_id.get(can_id)

    def add(self, can_id: int, abbrev: str, name: str) -> None:
        self._by_can_id[can_id] = ModuleInfo(abbrev, name)

    def format(self, can_id: Optional[int]) -> str:
        text = utils.format_can_id(can_id)
        info = self.get(can_id) if can_id is not None else None
        return f"{info.abbrev} ({text}) - {info.name}" if info else text

    def load_csv(self, path: str) -> int:
        """Merge "CAN_ID,Abbrev,Name" rows into the book; returns rows added."""
        added = 0
        with open(path, newline="") as f:
            for row in csv.reader(f):
                if len(row) < 2 or row[0].strip().startswith("#"):
                    continue
                can_id = _parse_hex_key(row[0], 0x1FFFFFFF)
                if can_id is None:
                    continue
                abbrev = row[1].strip()
                name = row[2].strip() if len(row) > 2 else ""
                self.add(can_id, abbrev, name or abbrev)
                added += 1
        return added


def _parse_hex_key(text: str, maximum: int) -> Optional[int]:
    s = text.strip().lower()
    if s.startswith("0x"): s = s[2:]
    try:
        value = int(s, 16)
    except ValueError:
        return None
    return value if 0 <= value <= maximum else None
