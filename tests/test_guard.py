import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from examgrader.common.errors import ConflictError
from examgrader.db.guard import is_unique_violation, run_guarded
from examgrader.features.stats.models import GroupProblemStats


def test_retries_after_lost_compare_and_swap(session_factory):
    calls = {"n": 0}

    with session_factory() as db:
        with db.begin():
            def _op():
                calls["n"] += 1
                if calls["n"] == 1:
                    raise StaleDataError("row version moved")
                db.add(GroupProblemStats(group_id="g", problem_id="p", total_attempts=1))
                return "done"

            assert run_guarded(db, _op, retries=3, label="test") == "done"

    assert calls["n"] == 2
    with session_factory() as db:
        assert db.query(GroupProblemStats).count() == 1


def test_gives_up_with_conflict(session_factory):
    def _op():
        raise StaleDataError("always stale")

    with session_factory() as db:
        with db.begin():
            with pytest.raises(ConflictError) as exc:
                run_guarded(db, _op, retries=2, label="test")
    assert exc.value.status_code == 409


def test_duplicate_insert_rolls_back_only_the_savepoint(session_factory):
    with session_factory() as db:
        with db.begin():
            db.add(GroupProblemStats(group_id="g", problem_id="p", total_attempts=1))
            db.flush()
            attempts = {"n": 0}

            def _op():
                attempts["n"] += 1
                existing = db.query(GroupProblemStats).filter_by(group_id="g", problem_id="p").one_or_none()
                if attempts["n"] == 1:
                    # Simulates a racer that did not see the row yet
                    db.add(GroupProblemStats(group_id="g", problem_id="p", total_attempts=1))
                else:
                    existing.total_attempts += 1

            run_guarded(db, _op, retries=3, label="test")

    assert attempts["n"] == 2
    with session_factory() as db:
        row = db.query(GroupProblemStats).one()
        assert row.total_attempts == 2
        assert row.version == 2


def test_non_unique_integrity_error_is_not_retried(session_factory):
    calls = {"n": 0}

    def _op():
        calls["n"] += 1
        db.add(GroupProblemStats(group_id=None, problem_id="p", total_attempts=1))

    with session_factory() as db:
        with db.begin():
            with pytest.raises(IntegrityError) as exc:
                run_guarded(db, _op, retries=3, label="test")

    assert calls["n"] == 1
    assert not is_unique_violation(exc.value)
