import sys
import os
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

# Ensure repo root on sys.path for imports like `examgrader...`
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from examgrader.core.config import Settings  # noqa: E402
from examgrader.db.base import Base  # noqa: E402
from examgrader.db.session import build_engine, build_session_factory  # noqa: E402
import examgrader.db.models  # noqa: E402,F401
from examgrader.features.complexity.models import ComplexityProbeSpec  # noqa: E402
from examgrader.features.exams.models import Exam, ExamGroup, ExamProblem, Group, GroupMember  # noqa: E402
from examgrader.features.problems.models import DriverCode, Problem, TestCase  # noqa: E402

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Mutable ``now`` for attempt expiry tests."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings():
    s = Settings()
    s.judge0_api_url = "http://judge.test:2358"
    s.judge0_api_key = ""
    s.judge0_host = ""
    s.judge0_poll_interval_s = 0.0
    s.complexity_warmup = False
    s.max_source_bytes = 64 * 1024
    s.stats_cas_retries = 5
    return s


@pytest.fixture
def engine():
    eng = build_engine("sqlite://")
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def clock():
    return FakeClock()


def seed_exam(
    session_factory,
    *,
    student_id: str = "student-1",
    cases=(("1 2", "3"), ("2 2", "4"), ("5 5", "10"), ("0 0", "0")),
    problems: int = 1,
    duration_minutes: int = 60,
    published: bool = True,
    start_at=None,
    member: bool = True,
    probe_spec: dict = None,
):
    """Create one exam with ``problems`` problems, one linked group and the student in it."""
    with session_factory() as db:
        with db.begin():
            exam = Exam(title="Midterm", duration_minutes=duration_minutes, is_published=published, start_at=start_at)
            group = Group(name="CS101-A")
            db.add_all([exam, group])
            db.flush()
            problem_ids = []
            for p in range(problems):
                problem = Problem(title=f"Sum {p}")
                db.add(problem)
                db.flush()
                problem_ids.append(problem.id)
                for idx, (stdin, expected) in enumerate(cases):
                    db.add(TestCase(problem_id=problem.id, input=stdin, output=expected, order_index=idx))
                db.add(DriverCode(problem_id=problem.id, language_id=71, header="import sys", footer="main()"))
                db.add(ExamProblem(exam_id=exam.id, problem_id=problem.id))
                if probe_spec is not None:
                    db.add(ComplexityProbeSpec(problem_id=problem.id, **probe_spec))
            db.add(ExamGroup(exam_id=exam.id, group_id=group.id))
            if member:
                db.add(GroupMember(group_id=group.id, student_id=student_id))
            return SimpleNamespace(
                exam_id=exam.id,
                group_id=group.id,
                problem_id=problem_ids[0],
                problem_ids=problem_ids,
                student_id=student_id,
            )
