"""Per-component and per-generation timing for modland runs.

Opt-in: a disabled monitor is a no-op, so the generation loop can always
call it.

Usage:
    from modland.perf import PerfMonitor

    perf = PerfMonitor(enabled=True)
    result = simulate(config, maps, allele_freqs, perf=perf)
    print(perf.report())
"""

import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, List


@dataclass
class ComponentStats:
    """Timing statistics for a single component."""
    total_time: float = 0.0
    call_count: int = 0

    @property
    def mean_time(self) -> float:
        return self.total_time / self.call_count if self.call_count > 0 else 0.0

    def add(self, elapsed: float) -> None:
        self.total_time += elapsed
        self.call_count += 1


class PerfMonitor:
    """Wall-clock time per component ('selection', 'mating', 'meiosis')
    and per generation step.

    ``generation_times[i]`` is the duration of the i-th step taken while
    the monitor was enabled; restarts append to the same list.
    """

    def __init__(self, enabled: bool = False):
        self.enabled = enabled
        self._stats: Dict[str, ComponentStats] = defaultdict(ComponentStats)
        self.generation_times: List[float] = []

    @contextmanager
    def track(self, component: str):
        """Context manager timing one call of ``component``."""
        if not self.enabled:
            yield
            return

        t0 = time.perf_counter()
        try:
            yield
        finally:
            self._stats[component].add(time.perf_counter() - t0)

    @contextmanager
    def generation(self):
        """Context manager timing one whole generation step."""
        if not self.enabled:
            yield
            return

        t0 = time.perf_counter()
        try:
            yield
        finally:
            self.generation_times.append(time.perf_counter() - t0)

    def get_stats(self) -> Dict[str, ComponentStats]:
        return dict(self._stats)

    def total_time(self) -> float:
        return sum(s.total_time for s in self._stats.values())

    def summary(self) -> Dict[str, float]:
        """Mean milliseconds per call of each component and per generation."""
        out = {name: s.mean_time * 1000 for name, s in self._stats.items()}
        if self.generation_times:
            out['generation'] = 1000 * sum(self.generation_times) / len(self.generation_times)
        return out

    def report(self) -> str:
        """Component shares of the run time and the slowest generation."""
        total = self.total_time()
        lines = [f"{len(self.generation_times)} generations, {total:.3f} s in components"]
        for name, stats in sorted(self._stats.items(), key=lambda x: -x[1].total_time):
            share = 100 * stats.total_time / total if total > 0 else 0.0
            lines.append(
                f"  {name:<10} {stats.mean_time * 1000:8.2f} ms/gen  {share:5.1f}%"
            )
        if self.generation_times:
            slowest = max(range(len(self.generation_times)),
                          key=self.generation_times.__getitem__)
            lines.append(
                f"  slowest step #{slowest}: "
                f"{self.generation_times[slowest] * 1000:.2f} ms"
            )
        return '\n'.join(lines)

    def reset(self) -> None:
        self._stats.clear()
        self.generation_times.clear()
