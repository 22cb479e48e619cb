import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from conftest import seed_exam
from examgrader.features.submissions.models import Submission
from examgrader.features.submissions.repository import submissions_repository
from examgrader.features.submissions.selector import FinalSubmissionSelector, should_replace


def _submit(session_factory, selector, ctx, passed, attempt_id=None):
    with session_factory() as db:
        with db.begin():
            sub = Submission(
                problem_id=ctx.problem_id,
                student_id=ctx.student_id,
                attempt_id=attempt_id,
                source_code="x",
                language_id=71,
                language="Python",
                status="PARTIAL",
                score=passed * 25,
                passed_testcases=passed,
                total_testcases=4,
            )
            submissions_repository.add(db, sub)
            selection = selector.select(db, sub)
    return sub.id, selection


def _finals(session_factory, ctx, attempt_id=None):
    with session_factory() as db:
        return [
            s.id
            for s in submissions_repository.list_finals(
                db, student_id=ctx.student_id, problem_id=ctx.problem_id, attempt_id=attempt_id
            )
        ]


def test_should_replace_rule():
    assert should_replace(0, None)
    assert should_replace(3, 3)
    assert should_replace(4, 3)
    assert not should_replace(2, 3)


def test_ties_go_to_newer_and_worse_is_ignored(session_factory, settings):
    ctx = seed_exam(session_factory)
    selector = FinalSubmissionSelector(settings)

    first, sel1 = _submit(session_factory, selector, ctx, passed=2)
    assert sel1.promoted and sel1.demoted_id is None
    assert _finals(session_factory, ctx) == [first]

    tie, sel2 = _submit(session_factory, selector, ctx, passed=2)
    assert sel2.promoted and sel2.demoted_id == first
    assert _finals(session_factory, ctx) == [tie]

    worse, sel3 = _submit(session_factory, selector, ctx, passed=1)
    assert not sel3.promoted
    assert _finals(session_factory, ctx) == [tie]

    better, _ = _submit(session_factory, selector, ctx, passed=4)
    assert _finals(session_factory, ctx) == [better]


def test_triples_are_independent(session_factory, settings):
    ctx = seed_exam(session_factory)
    selector = FinalSubmissionSelector(settings)

    practice, _ = _submit(session_factory, selector, ctx, passed=1)
    other_student = type(ctx)(**{**vars(ctx), "student_id": "student-2"})
    theirs, _ = _submit(session_factory, selector, other_student, passed=0)

    assert _finals(session_factory, ctx) == [practice]
    assert _finals(session_factory, other_student) == [theirs]


def test_storage_rejects_two_finals_for_one_triple(session_factory):
    ctx = seed_exam(session_factory)
    with pytest.raises(IntegrityError):
        with session_factory() as db:
            with db.begin():
                for _ in range(2):
                    db.add(
                        Submission(
                            problem_id=ctx.problem_id,
                            student_id=ctx.student_id,
                            attempt_id=None,
                            source_code="x",
                            language_id=71,
                            language="Python",
                            status="ACCEPTED",
                            is_final=True,
                        )
                    )
                db.flush()

    with session_factory() as db:
        assert db.scalars(select(Submission)).all() == []
