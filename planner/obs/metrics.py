"""In-process counters and latency histograms.

Everything lives in module state guarded by one lock; the host is a single
process and ``/metrics`` just returns a snapshot. Series are keyed by metric
name plus a sorted tuple of label pairs.
"""

from typing import Any, Dict, List, Optional, Tuple
import threading

LabelKey = Tuple[Tuple[str, str], ...]

# Phrasing calls are LLM round trips, hence the long upper bins
LATENCY_BINS_MS: Tuple[int, ...] = (50, 100, 250, 500, 1000, 2000, 4000, 8000)

_lock = threading.Lock()
_counters: Dict[Tuple[str, LabelKey], int] = {}
_histograms: Dict[Tuple[str, LabelKey], "_Histogram"] = {}


class _Histogram:
    __slots__ = ("counts", "total", "sum_ms")

    def __init__(self) -> None:
        # one slot per bin plus overflow
        self.counts = [0] * (len(LATENCY_BINS_MS) + 1)
        self.total = 0
        self.sum_ms = 0.0

    def observe(self, value_ms: float) -> None:
        idx = len(LATENCY_BINS_MS)
        for i, upper in enumerate(LATENCY_BINS_MS):
            if value_ms <= upper:
                idx = i
                break
        self.counts[idx] += 1
        self.total += 1
        self.sum_ms += value_ms


def _key(metric: str, labels: Optional[Dict[str, str]]) -> Tuple[str, LabelKey]:
    if not labels:
        return metric, ()
    return metric, tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def inc_counter(metric: str, labels: Optional[Dict[str, str]] = None, amount: int = 1) -> None:
    key = _key(metric, labels)
    with _lock:
        _counters[key] = _counters.get(key, 0) + amount


def get_counter(metric: str, labels: Optional[Dict[str, str]] = None) -> int:
    """Current value of one labelled series, 0 if never incremented."""
    with _lock:
        return _counters.get(_key(metric, labels), 0)


def record_timing(metric: str, value_ms: float, labels: Optional[Dict[str, str]] = None) -> None:
    if value_ms is None:
        return
    key = _key(metric, labels)
    with _lock:
        hist = _histograms.get(key)
        if hist is None:
            hist = _histograms[key] = _Histogram()
        hist.observe(float(value_ms))


def get_metrics_snapshot() -> Dict[str, Any]:
    with _lock:
        counters: List[Dict[str, Any]] = [
            {"name": name, "labels": dict(lk), "value": value}
            for (name, lk), value in _counters.items()
        ]
        histograms: List[Dict[str, Any]] = [
            {
                "name": name,
                "labels": dict(lk),
                "bins_ms": list(LATENCY_BINS_MS),
                "counts": list(h.counts),
                "count": h.total,
                "sum_ms": h.sum_ms,
                "avg_ms": round(h.sum_ms / h.total, 2) if h.total else 0.0,
            }
            for (name, lk), h in _histograms.items()
        ]
    return {"counters": counters, "histograms": histograms}


def reset_metrics() -> None:
    """Drop every series. Used between tests."""
    with _lock:
        _counters.clear()
        _histograms.clear()
