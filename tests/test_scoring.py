import pytest

from examgrader.features.submissions.schemas import CaseVerdict, SubmissionStatus
from examgrader.features.submissions.service import (
    apply_complexity_penalty,
    compute_score,
    map_judge_status,
    overall_status,
)

A = CaseVerdict.ACCEPTED
WA = CaseVerdict.WRONG_ANSWER
TLE = CaseVerdict.TIME_LIMIT_EXCEEDED
CE = CaseVerdict.COMPILATION_ERROR
RE = CaseVerdict.RUNTIME_ERROR
IE = CaseVerdict.INTERNAL_ERROR


@pytest.mark.parametrize(
    "status_id,verdict",
    [(3, A), (4, WA), (5, TLE), (6, CE), (7, RE), (11, RE), (12, RE), (13, IE), (14, IE), (0, IE)],
)
def test_map_judge_status(status_id, verdict):
    assert map_judge_status(status_id) == verdict


@pytest.mark.parametrize(
    "verdicts,expected",
    [
        ([A, A, TLE, A], SubmissionStatus.TIME_LIMIT),
        ([A, RE, CE], SubmissionStatus.COMPILE_ERROR),
        ([RE, TLE], SubmissionStatus.TIME_LIMIT),
        ([A, RE, WA], SubmissionStatus.RUNTIME_ERROR),
        ([A, A], SubmissionStatus.ACCEPTED),
        ([A, WA, WA], SubmissionStatus.PARTIAL),
        ([A, IE], SubmissionStatus.PARTIAL),
        ([WA, WA], SubmissionStatus.WRONG_ANSWER),
        ([IE], SubmissionStatus.WRONG_ANSWER),
    ],
)
def test_overall_status_precedence(verdicts, expected):
    assert overall_status(verdicts) == expected


def test_score_for_three_of_four():
    assert compute_score(3, 4) == 75


@pytest.mark.parametrize("passed,total", [(p, t) for t in range(1, 8) for p in range(0, t + 1)])
def test_score_bounds(passed, total):
    score = compute_score(passed, total)
    assert 0 <= score <= 100
    assert abs(score - passed / total * 100) <= 0.5


def test_score_rounds_half_up():
    # 1/8 = 12.5 -> 13 (banker's rounding would give 12)
    assert compute_score(1, 8) == 13
    assert compute_score(0, 0) == 0


def test_complexity_penalty_halves_and_rounds_up():
    assert apply_complexity_penalty(100) == 50
    assert apply_complexity_penalty(75) == 38
    assert apply_complexity_penalty(0) == 0
