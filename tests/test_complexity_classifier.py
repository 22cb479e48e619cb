import asyncio
import random

import pytest

from examgrader.common.errors import UnstableMeasurementError, ValidationError
from examgrader.features.complexity.classifier import (
    ComplexityClassifier,
    build_probe_inputs,
    classify,
    generate_array,
    meets_expectation,
    time_ratios,
)
from examgrader.features.complexity.schemas import ComplexityClass, FillPattern, ProbeSpecSchema
from examgrader.features.judge0.schemas import JudgeRunResult


def _classify_times(times):
    r1, r2 = time_ratios(times)
    return classify(r1, r2)


def test_linear_doubling_lands_in_nlogn_bin():
    assert time_ratios([10, 20, 40]) == (2.0, 2.0)
    assert _classify_times([10, 20, 40]) == ComplexityClass.NLOGN


def test_tenfold_growth_is_exponential():
    assert _classify_times([10, 100, 1000]) == ComplexityClass.EXP


def test_noisy_ratios_are_unstable():
    # r1 = 2, r2 = 8 -> |2 - 8| / 8 = 0.75 > 0.4
    assert _classify_times([10, 20, 160]) == ComplexityClass.UNSTABLE


@pytest.mark.parametrize(
    "r1,r2",
    [(2.0, 8.0), (1.0, 1.5), (3.0, 3.9), (1.2, 2.5), (0.5, 0.9)],
)
def test_unstable_detection_is_symmetric(r1, r2):
    assert (classify(r1, r2) == ComplexityClass.UNSTABLE) == (classify(r2, r1) == ComplexityClass.UNSTABLE)


@pytest.mark.parametrize(
    "avg,expected",
    [
        (1.0, ComplexityClass.LOGN),
        (1.29, ComplexityClass.LOGN),
        (1.3, ComplexityClass.N),
        (1.79, ComplexityClass.N),
        (1.8, ComplexityClass.NLOGN),
        (2.6, ComplexityClass.N2),
        (4.5, ComplexityClass.N3),
        (7.49, ComplexityClass.N3),
        (7.5, ComplexityClass.EXP),
    ],
)
def test_bins_are_half_open(avg, expected):
    assert classify(avg, avg) == expected


def test_zero_ratios_are_unknown():
    assert classify(0.0, 0.0) == ComplexityClass.UNKNOWN


@pytest.mark.parametrize("times", [[10, 0, 40], [-1, 2, 4], [1, float("nan"), 4], [1, 2, float("inf")]])
def test_non_positive_or_non_finite_times_raise(times):
    with pytest.raises(UnstableMeasurementError):
        time_ratios(times)


def test_comparison_uses_total_order():
    assert meets_expectation(ComplexityClass.N, ComplexityClass.NLOGN)
    assert meets_expectation(ComplexityClass.NLOGN, ComplexityClass.NLOGN)
    assert not meets_expectation(ComplexityClass.N2, ComplexityClass.NLOGN)
    assert not meets_expectation(ComplexityClass.UNSTABLE, ComplexityClass.EXP)
    assert not meets_expectation(ComplexityClass.UNKNOWN, ComplexityClass.EXP)


def test_fill_patterns():
    rng = random.Random(7)
    srt = generate_array(50, 0, 100, FillPattern.SORTED, rng)
    assert srt == sorted(srt)
    rev = generate_array(50, 0, 100, FillPattern.REVERSE, rng)
    assert rev == sorted(rev, reverse=True)
    const = generate_array(20, 0, 100, FillPattern.CONSTANT, rng)
    assert len(set(const)) == 1 and len(const) == 20
    rnd = generate_array(30, -5, 5, FillPattern.RANDOM, rng)
    assert all(-5 <= v <= 5 for v in rnd)


def test_probe_input_serialisation():
    spec = ProbeSpecSchema(problem_id="p", sizes=[4, 8, 16], min_value=1, max_value=1, expected_complexity="N")
    inputs = build_probe_inputs(spec, random.Random(0))
    assert inputs[0] == "4\n1 1 1 1"
    assert [int(i.split("\n")[0]) for i in inputs] == [4, 8, 16]


@pytest.mark.parametrize(
    "sizes",
    [[1000, 2000], [1000, 1000, 2000], [1000, 5000, 10000], [0, 2, 4], [1000, 1200, 2400]],
)
def test_probe_spec_rejects_sizes_that_break_the_bins(sizes):
    class Row:
        problem_id = "p"
        min_value = 0
        max_value = 10
        pattern = "RANDOM"
        expected_complexity = "N"

    Row.sizes = sizes
    with pytest.raises(ValidationError) as exc:
        ProbeSpecSchema.from_model(Row)
    assert exc.value.error_code == "invalid_probe_spec"


class _TimedJudge:
    def __init__(self, times):
        self.times = list(times)
        self.stdins = []

    async def submit_synchronous(self, case):
        self.stdins.append(case.stdin)
        return JudgeRunResult(status_id=3, time_seconds=self.times.pop(0))


def test_classifier_runs_probes_in_order_after_warmup(settings):
    settings.complexity_warmup = True
    judge = _TimedJudge([0.5, 0.01, 0.02, 0.04])
    spec = ProbeSpecSchema(
        problem_id="p", sizes=[1000, 2000, 4000], min_value=0, max_value=9, expected_complexity="NLOGN"
    )
    classifier = ComplexityClassifier(judge, settings, rng=random.Random(1))

    outcome = asyncio.run(classifier.evaluate(spec, "code", 71))

    assert len(judge.stdins) == 4
    assert [s.split("\n")[0] for s in judge.stdins] == ["1000", "1000", "2000", "4000"]
    assert outcome.times == [0.01, 0.02, 0.04]
    assert outcome.observed == ComplexityClass.NLOGN
    assert outcome.passed is True


def test_classifier_missing_time_is_unstable(settings):
    judge = _TimedJudge([0.01, None, 0.04])
    spec = ProbeSpecSchema(problem_id="p", sizes=[10, 20, 40], expected_complexity="N")
    classifier = ComplexityClassifier(judge, settings, rng=random.Random(1))

    with pytest.raises(UnstableMeasurementError):
        asyncio.run(classifier.evaluate(spec, "code", 71))
