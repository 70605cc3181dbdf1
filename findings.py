# findings.py
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Optional

from models import LineKind
from pipeline import LogSession


@dataclass
class Findings:
    total_lines: int = 0
    line_kinds: Dict[LineKind, int] = field(default_factory=dict)
    pdus: int = 0
    transactions: int = 0
    complete: int = 0
    negative: int = 0
    orphans: int = 0
    incomplete: int = 0
    nrc_counts: Dict[int, int] = field(default_factory=dict)
    did_counts: Dict[int, int] = field(default_factory=dict)
    latency_min_ms: Optional[float] = None
    latency_avg_ms: Optional[float] = None
    latency_max_ms: Optional[float] = None


def summarize(session: LogSession) -> Findings:
    """
    Counts over one decoded session. Histograms are keyed in ascending order.

    DID counts cover transactions and diagnostic XML lines.
    """
    kinds = Counter(r.kind for r in session.records)
    nrcs = Counter(t.nrc for t in session.transactions if t.nrc is not None)
    dids = Counter(t.did for t in session.transactions if t.did is not None)
    dids.update(r.did for r in session.records if r.kind is LineKind.XML and r.did is not None)
    latencies = [t.latency_ms for t in session.transactions if t.latency is not None]

    f = Findings(
        total_lines=len(session.records),
        line_kinds={k: kinds[k] for k in LineKind if kinds[k]},
        pdus=len(session.pdus),
        transactions=len(session.transactions),
        complete=sum(1 for t in session.transactions if t.is_complete and not t.is_orphan),
        negative=sum(1 for t in session.transactions if t.is_negative),
        orphans=sum(1 for t in session.transactions if t.is_orphan),
        incomplete=sum(1 for t in session.transactions if not t.is_complete),
        nrc_counts=dict(sorted(nrcs.items())),
        did_counts=dict(sorted(dids.items())),
    )
    if latencies:
        f.latency_min_ms = min(latencies)
        f.latency_max_ms = max(latencies)
        f.latency_avg_ms = sum(latencies) / len(latencies)
    return f
