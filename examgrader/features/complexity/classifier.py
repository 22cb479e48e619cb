"""Empirical runtime-growth classification.

A functionally correct solution is run on synthetic arrays of increasing size
and the ratios between consecutive elapsed times are binned into a growth
class::

    avg ratio   [0, 1.3)  [1.3, 1.8)  [1.8, 2.6)  [2.6, 4.5)  [4.5, 7.5)  [7.5, inf)
    class        LOGN      N           NLOGN       N2          N3          EXP

The bins only mean something when each probe size is about twice the previous
one; ``ProbeSpecSchema`` enforces that.
"""

from __future__ import annotations

import logging
import math
import random
from typing import List, Optional, Sequence, Tuple

from examgrader.common.errors import UnstableMeasurementError
from examgrader.core.config import Settings, get_settings
from examgrader.features.judge0.schemas import JudgeCase
from examgrader.features.judge0.service import Judge0Service
from .schemas import ComplexityClass, ComplexityOutcome, FillPattern, ProbeSpecSchema

logger = logging.getLogger(__name__)

MAX_RELATIVE_DEVIATION = 0.4

_BINS: Tuple[Tuple[float, float, ComplexityClass], ...] = (
    (0.0, 1.3, ComplexityClass.LOGN),
    (1.3, 1.8, ComplexityClass.N),
    (1.8, 2.6, ComplexityClass.NLOGN),
    (2.6, 4.5, ComplexityClass.N2),
    (4.5, 7.5, ComplexityClass.N3),
    (7.5, math.inf, ComplexityClass.EXP),
)


def classify(r1: float, r2: float) -> ComplexityClass:
    """Map two consecutive time ratios to a growth class."""
    peak = max(r1, r2)
    if not peak > 0:
        return ComplexityClass.UNKNOWN
    if abs(r1 - r2) / peak > MAX_RELATIVE_DEVIATION:
        return ComplexityClass.UNSTABLE
    avg = (r1 + r2) / 2
    for low, high, cls in _BINS:
        if low <= avg < high:
            return cls
    return ComplexityClass.UNKNOWN


def time_ratios(times: Sequence[float]) -> Tuple[float, float]:
    """Ratios of the first three measurements; later probes are informational."""
    if len(times) < 3:
        raise UnstableMeasurementError(message="At least three probe timings are required")
    for t in times:
        if t is None or not math.isfinite(t) or t <= 0:
            raise UnstableMeasurementError(message=f"Unstable complexity measurement: {list(times)}")
    return times[1] / times[0], times[2] / times[1]


def meets_expectation(observed: ComplexityClass, expected: ComplexityClass) -> bool:
    # UNSTABLE / UNKNOWN have no rank and never pass
    if observed.ordinal is None or expected.ordinal is None:
        return False
    return observed.ordinal <= expected.ordinal


def generate_array(size: int, low: int, high: int, pattern: FillPattern, rng: random.Random) -> List[int]:
    arr = [rng.randint(low, high) for _ in range(size)]
    if pattern == FillPattern.SORTED:
        arr.sort()
    elif pattern == FillPattern.REVERSE:
        arr.sort(reverse=True)
    elif pattern == FillPattern.CONSTANT and arr:
        arr = [arr[0]] * size
    return arr


def build_probe_inputs(spec: ProbeSpecSchema, rng: random.Random) -> List[str]:
    inputs: List[str] = []
    for size in spec.sizes:
        arr = generate_array(size, spec.min_value, spec.max_value, spec.pattern, rng)
        inputs.append(f"{size}\n{' '.join(str(v) for v in arr)}")
    return inputs


class ComplexityClassifier:
    """Runs probes one at a time through the judge and classifies the timings.

    Probes are never run concurrently: parallel runs would share the judge's
    workers and distort the elapsed times being compared.
    """

    def __init__(
        self,
        judge: Judge0Service,
        settings: Optional[Settings] = None,
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.judge = judge
        self.settings = settings or get_settings()
        self.rng = rng or random.Random()

    async def measure(self, spec: ProbeSpecSchema, source_code: str, language_id: int) -> List[float]:
        inputs = build_probe_inputs(spec, self.rng)
        if self.settings.complexity_warmup:
            await self.judge.submit_synchronous(
                JudgeCase(source_code=source_code, language_id=language_id, stdin=inputs[0])
            )
        times: List[float] = []
        for stdin in inputs:
            result = await self.judge.submit_synchronous(
                JudgeCase(source_code=source_code, language_id=language_id, stdin=stdin)
            )
            times.append(result.time_seconds if result.time_seconds is not None else 0.0)
        return times

    async def evaluate(self, spec: ProbeSpecSchema, source_code: str, language_id: int) -> ComplexityOutcome:
        times = await self.measure(spec, source_code, language_id)
        r1, r2 = time_ratios(times)
        observed = classify(r1, r2)
        passed = meets_expectation(observed, spec.expected_complexity)
        logger.info(
            "complexity problem=%s times=%s ratios=(%.3f, %.3f) observed=%s expected=%s passed=%s",
            spec.problem_id,
            times,
            r1,
            r2,
            observed.value,
            spec.expected_complexity.value,
            passed,
        )
        return ComplexityOutcome(
            observed=observed,
            expected=spec.expected_complexity,
            passed=passed,
            times=times,
            ratios=[r1, r2],
        )
