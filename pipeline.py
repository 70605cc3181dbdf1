# pipeline.py
# End-to-end decoding (records -> PDUs -> transactions).
#
# Each call owns its own reassembly and correlation state, so separate logs
# can be decoded independently (or in parallel) without sharing anything.

from dataclasses import dataclass, field
from typing import Iterable, List

import can

import config
from conversation import DEFAULT_POLICY, MatchPolicy, build_transactions
from isotp_reassembler import reassemble
from line_classifier import read_log, records_from_lines, records_from_messages
from models import Pdu, RawRecord, Transaction
from uds_lookup import DEFAULT_LOOKUP, UdsLookup


@dataclass
class LogSession:
    name: str
    records: List[RawRecord] = field(default_factory=list)
    pdus: List[Pdu] = field(default_factory=list)
    transactions: List[Transaction] = field(default_factory=list)


def decode_records(records: Iterable[RawRecord], name: str = "session",
                   lookup: UdsLookup = DEFAULT_LOOKUP, policy: MatchPolicy = DEFAULT_POLICY,
                   stale_after: float = config.STALE_AFTER_SECONDS) -> LogSession:
    records = sorted(records, key=lambda r: r.line_number)
    pdus = reassemble(records, stale_after=stale_after)
    return LogSession(
        name=name,
        records=records,
        pdus=pdus,
        transactions=build_transactions(pdus, lookup=lookup, policy=policy),
    )


def decode_lines(lines: Iterable[str], name: str = "session", **kwargs) -> LogSession:
    return decode_records(records_from_lines(lines), name=name, **kwargs)


def decode_messages(messages: Iterable[can.Message], name: str = "capture", **kwargs) -> LogSession:
    return decode_records(records_from_messages(messages), name=name, **kwargs)


def decode_file(path: str, **kwargs) -> LogSession:
    kwargs.setdefault("name", path)
    return decode_records(read_log(path), **kwargs)
