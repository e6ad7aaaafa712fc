from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class Verdict:
    metric: float
    baseline: float | None
    margin: float
    samples: int
    regression: bool

    @property
    def ratio(self) -> float | None:
        """Baseline over current metric; > margin means regression."""
        if self.baseline is None:
            return None
        if self.metric <= 0:
            return float("inf") if self.baseline > 0 else 1.0
        return self.baseline / self.metric


def judge(metric: float, history: Iterable[float], margin: float) -> Verdict:
    """Compare a throughput metric (higher is better) with its history.

    The baseline is the best historical value. A regression is flagged when
    the current metric, scaled up by ``margin``, still falls short of it.
    An empty history never regresses.
    """
    if margin < 1.0:
        raise ValueError("margin must be >= 1.0")

    samples = [float(value) for value in history]
    if not samples:
        return Verdict(metric=metric, baseline=None, margin=margin, samples=0, regression=False)

    baseline = max(samples)
    return Verdict(
        metric=metric,
        baseline=baseline,
        margin=margin,
        samples=len(samples),
        regression=metric * margin < baseline,
    )
