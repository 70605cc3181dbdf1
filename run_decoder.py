# run_decoder.py
import argparse
import logging
import sys

import config
import transport
import utils
from conversation import MatchPolicy
from findings import summarize
from models import LineKind, Transaction
from pipeline import LogSession, decode_file, decode_lines, decode_messages
from uds_lookup import ModuleAddressBook, UdsLookup, load_did_csv

# Mixed-content sample log. Payloads are stored without ISO-TP framing, so
# "22 F1 88" reads as a stray consecutive frame and is dropped.
SAMPLE_LINES = [
    "2025-10-21T10:23:45.123 ISO15765 RX <- [00,00,07,D8,7F,22,78]",
    "2025-10-21T10:23:45.200 ISO15765 TX -> [00,00,07,D0,62,80,6A,41,42,43,44]",
    "2025-10-21T10:23:47.000 ISO15765 TX -> [00,00,07,D0,22,F1,88]",
    "2025-10-21T10:23:47.100 ISO15765 RX <- [00,00,07,D8,62,F1,88,56,45,52,53,49,4F,4E,31]",
    "DEBUG: Starting diagnostic session",
    '<ns3:didValue didValue="F188" type="Strategy"><ns3:Response>4D59535452415445475931</ns3:Response></ns3:didValue>',
]


def describe(t: Transaction, lookup: UdsLookup, book: ModuleAddressBook) -> str:
    did = f" DID 0x{t.did:04X} ({lookup.did_name(t.did)})" if t.did is not None else ""
    head = f"{lookup.service_name(t.service_id)} (0x{t.service_id:02X}){did}"

    if t.is_orphan:
        req = "line ----"
    else:
        req = f"line {t.request_line:>5} {book.format(t.request_can_id)}"

    if not t.is_complete:
        return f"[INCOMPLETE] {req} | {head} | no response"

    resp = f"line {t.response_line:>5} {book.format(t.response_can_id)}"
    if t.is_negative:
        outcome = f"NRC 0x{t.nrc:02X} ({lookup.nrc_meaning(t.nrc)})"
    else:
        outcome = f"positive 0x{t.positive_service_id:02X}"
        if t.response_data:
            outcome += f" data [{utils.pretty_hex(t.response_data[:16])}{' ...' if len(t.response_data) > 16 else ''}]"
            if t.did is not None:
                outcome += f' "{utils.ascii_preview(t.response_data, 32)}"'
    latency = f" {t.latency_ms:.1f} ms" if t.latency is not None else ""
    tag = "[ORPHAN]" if t.is_orphan else ("[NEGATIVE]" if t.is_negative else "[OK]")
    return f"{tag} {req} -> {resp} | {head} | {outcome}{latency}"


def print_session(session: LogSession, lookup: UdsLookup, book: ModuleAddressBook) -> None:
    print(f"[Decoder] {session.name}: {len(session.records)} records, {len(session.pdus)} PDUs, "
          f"{len(session.transactions)} transactions")
    for t in session.transactions:
        print(describe(t, lookup, book))
    for r in session.records:
        if r.kind is LineKind.XML and r.did is not None:
            value = f' "{utils.ascii_preview(r.payload, 32)}"' if r.payload else ""
            print(f"[XML] line {r.line_number:>5} | DID 0x{r.did:04X} ({lookup.did_name(r.did)}){value}")

    f = summarize(session)
    print(f"[Decoder] complete={f.complete} negative={f.negative} orphans={f.orphans} incomplete={f.incomplete}")
    if f.nrc_counts:
        print("[Decoder] NRCs: " + ", ".join(f"0x{k:02X}x{v}" for k, v in f.nrc_counts.items()))
    if f.did_counts:
        print("[Decoder] DIDs: " + ", ".join(f"0x{k:04X}x{v}" for k, v in f.did_counts.items()))
    if f.latency_avg_ms is not None:
        print(f"[Decoder] latency min/avg/max: {f.latency_min_ms:.1f}/{f.latency_avg_ms:.1f}/{f.latency_max_ms:.1f} ms")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Reconstruct UDS request/response exchanges from CAN logs")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("log", nargs="?", help="text log, or python-can log (.asc, .blf, .csv, .trc, ...)")
    source.add_argument("--sample", action="store_true", help="decode the built-in text sample")
    source.add_argument("--loopback", action="store_true", help="decode a capture generated through ISO-TP loopback")
    source.add_argument("--live", type=float, metavar="SECONDS", help=f"capture from {config.CAN_CHANNEL} for N seconds")
    parser.add_argument("--save", metavar="PATH", help="also write the loopback/live capture with python-can")
    parser.add_argument("--dids", metavar="CSV", help="DID name table (DID_HEX,Type,Name,Description)")
    parser.add_argument("--modules", metavar="CSV", help="address book (CAN_ID,Abbrev,Name)")
    parser.add_argument("--offset", type=utils.Hex_to_Int, default=config.RESPONSE_ID_OFFSET,
                        help="response CAN id offset from request id (default 0x8)")
    parser.add_argument("--window", type=float, default=config.MATCH_WINDOW_SECONDS,
                        help="request/response time window in seconds")
    parser.add_argument("--max-open", type=int, default=config.MAX_OPEN_REQUESTS)
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    lookup = UdsLookup()
    if args.dids:
        lookup = UdsLookup(dids={**lookup.dids, **load_did_csv(args.dids)})
    book = ModuleAddressBook()
    if args.modules:
        print(f"[Decoder] loaded {book.load_csv(args.modules)} modules from {args.modules}")

    try:
        policy = MatchPolicy(response_id_offset=args.offset, window_seconds=args.window, max_open=args.max_open)
    except ValueError as e:
        parser.error(str(e))
    opts = dict(lookup=lookup, policy=policy)

    if args.sample:
        session = decode_lines(SAMPLE_LINES, name="Sample", **opts)
    elif args.loopback or args.live is not None:
        if args.loopback:
            frames = transport.build_sample_capture()
        else:
            print(f"[Decoder] listening on {config.CAN_INTERFACE}:{config.CAN_CHANNEL} for {args.live:.1f}s")
            with transport.open_bus() as bus:
                frames = list(transport.capture_bus(bus, args.live))
        if args.save:
            print(f"[Decoder] wrote {transport.save_log(frames, args.save)} frames to {args.save}")
        session = decode_messages(frames, name="Loopback" if args.loopback else "Live", **opts)
    else:
        try:
            session = decode_file(args.log, **opts)
        except OSError as e:
            print(f"[Decoder] cannot read {args.log}: {e}", file=sys.stderr)
            return 1

    print_session(session, lookup, book)
    return 0


if __name__ == "__main__":
    sys.exit(main())
