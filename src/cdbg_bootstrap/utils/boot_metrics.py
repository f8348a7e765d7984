from contextlib import contextmanager
from dataclasses import dataclass, field
from time import perf_counter_ns
from typing import Dict, Iterator, Optional


@dataclass
class BootMetrics:
    """Wall-clock durations of the bootstrap phases (identity, fingerprint, ...)."""

    start_ns: int = field(default_factory=perf_counter_ns)
    phase_durations_ns: Dict[str, int] = field(default_factory=dict)
    end_ns: Optional[int] = None

    @contextmanager
    def phase(self, name: str) -> Iterator[None]:
        """Time the enclosed block; the duration is kept even if it raises."""
        started = perf_counter_ns()
        try:
            yield
        finally:
            self.phase_durations_ns[name] = perf_counter_ns() - started

    def finish(self) -> None:
        self.end_ns = perf_counter_ns()

    def to_dict(self) -> Dict[str, object]:
        total_ms = None
        if self.end_ns is not None:
            total_ms = (self.end_ns - self.start_ns) / 1_000_000.0
        return {
            "total_ms": total_ms,
            "phases_ms": {k: v / 1_000_000.0 for k, v in self.phase_durations_ns.items()},
        }
