"""Final-submission selection.

For each (student, problem, attempt) at most one submission is final. A new
submission takes over when it passes at least as many cases as the current
final one; ties go to the newer submission. Demotion and promotion happen in
the same savepoint, guarded by the ``version`` CAS on the demoted row and the
partial unique index on final rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from examgrader.core.config import Settings, get_settings
from examgrader.db.guard import run_guarded
from .models import Submission
from .repository import submissions_repository

logger = logging.getLogger(__name__)


@dataclass
class Selection:
    promoted: bool
    demoted_id: Optional[str] = None


def should_replace(new_passed: int, prior_passed: Optional[int]) -> bool:
    return prior_passed is None or new_passed >= prior_passed


class FinalSubmissionSelector:
    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()

    def select(self, db: Session, submission: Submission) -> Selection:
        def _op() -> Selection:
            prior = submissions_repository.get_final(
                db,
                student_id=submission.student_id,
                problem_id=submission.problem_id,
                attempt_id=submission.attempt_id,
                exclude_id=submission.id,
            )
            prior_passed = prior.passed_testcases if prior is not None else None
            if not should_replace(submission.passed_testcases, prior_passed):
                return Selection(promoted=False)
            demoted_id = None
            if prior is not None:
                prior.is_final = False
                # Demote before promoting so the partial unique index never sees two finals
                db.flush()
                demoted_id = prior.id
            submission.is_final = True
            db.flush()
            return Selection(promoted=True, demoted_id=demoted_id)

        selection = run_guarded(db, _op, retries=self.settings.stats_cas_retries, label="final_submission")
        if selection.promoted:
            logger.info("final submission %s (demoted=%s)", submission.id, selection.demoted_id)
        return selection
