"""
In-process counters rendered in the Prometheus text format at /metrics.

Counters are process-local; each worker exports its own values.
"""

import re
import threading
from typing import Dict, List, Optional, Sequence, Tuple

LabelValues = Tuple[str, ...]


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


class Counter:
    def __init__(self, name: str, label_names: Sequence[str] = ()):
        self.name = name
        self.label_names = tuple(label_names)
        self._values: Dict[LabelValues, float] = {}
        self._lock = threading.Lock()

    def _key(self, labels: Optional[Dict[str, str]]) -> LabelValues:
        labels = labels or {}
        return tuple(str(labels.get(name, "")) for name in self.label_names)

    def inc(self, labels: Optional[Dict[str, str]] = None, amount: float = 1.0) -> None:
        key = self._key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + amount

    def value(self, labels: Optional[Dict[str, str]] = None) -> float:
        with self._lock:
            return self._values.get(self._key(labels), 0.0)

    def samples(self) -> List[str]:
        with self._lock:
            items = sorted(self._values.items())
        lines = []
        for values, count in items:
            rendered = ",".join(f'{name}="{_escape(value)}"' for name, value in zip(self.label_names, values))
            lines.append(f"{self.name}{{{rendered}}} {count}" if rendered else f"{self.name} {count}")
        return lines

    def reset(self) -> None:
        with self._lock:
            self._values.clear()


class MetricsRegistry:
    def __init__(self):
        self._counters: Dict[str, Counter] = {}

    def counter(self, name: str, label_names: Sequence[str] = ()) -> Counter:
        return self._counters.setdefault(name, Counter(name, label_names))

    def export_prometheus(self) -> str:
        lines: List[str] = []
        for counter in self._counters.values():
            lines.append(f"# TYPE {counter.name} counter")
            lines.extend(counter.samples())
        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        for counter in self._counters.values():
            counter.reset()


METRICS = MetricsRegistry()

http_requests_total = METRICS.counter("http_requests_total", ["method", "path", "status"])
# outcome: committed | email_verify | rejected
pledge_submissions_total = METRICS.counter("pledge_submissions_total", ["outcome"])
pledge_rollbacks_total = METRICS.counter("pledge_rollbacks_total", ["error_code"])

_ID_SEGMENT = re.compile(r"^(\d+|[0-9a-fA-F]{8}-[0-9a-fA-F-]{27,})$")


def normalize_path(path: str) -> str:
    """Collapse numeric and uuid path segments to :id, e.g. /api/pledges/:id/draft."""
    segments = [":id" if _ID_SEGMENT.match(s) else s for s in path.split("/") if s]
    return "/" + "/".join(segments)
