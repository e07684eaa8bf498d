"""Job lifecycle transition tests."""

from __future__ import annotations

import unittest

from app.domain.job_fsm import (
    PROBED_PROGRESS,
    STAGE_PROGRESS,
    allowed_next_statuses,
    ensure_progress,
    ensure_transition,
    is_terminal,
)
from app.errors import JobTransitionError
from app.schemas.job import JobStatus


class JobFsmUnitTests(unittest.TestCase):
    def test_pipeline_transitions_are_allowed(self) -> None:
        allowed_pairs = [
            (JobStatus.QUEUED, JobStatus.DOWNLOADING),
            (JobStatus.DOWNLOADING, JobStatus.PROCESSING),
            (JobStatus.PROCESSING, JobStatus.UPLOADING),
            (JobStatus.UPLOADING, JobStatus.DONE),
        ]
        for old_status, new_status in allowed_pairs:
            with self.subTest(old_status=old_status, new_status=new_status):
                ensure_transition(old_status, new_status)

    def test_error_is_reachable_from_every_live_state(self) -> None:
        for status in (JobStatus.QUEUED, JobStatus.DOWNLOADING, JobStatus.PROCESSING, JobStatus.UPLOADING):
            with self.subTest(status=status):
                ensure_transition(status, JobStatus.ERROR)

    def test_skipping_stages_is_rejected(self) -> None:
        invalid_pairs = [
            (JobStatus.QUEUED, JobStatus.PROCESSING),
            (JobStatus.DOWNLOADING, JobStatus.DONE),
            (JobStatus.PROCESSING, JobStatus.DOWNLOADING),
            (JobStatus.PROCESSING, JobStatus.PROCESSING),
        ]
        for old_status, new_status in invalid_pairs:
            with self.subTest(old_status=old_status, new_status=new_status):
                with self.assertRaises(JobTransitionError):
                    ensure_transition(old_status, new_status)

    def test_terminal_states_are_immutable(self) -> None:
        for terminal_status in (JobStatus.DONE, JobStatus.ERROR):
            with self.subTest(terminal_status=terminal_status):
                self.assertTrue(is_terminal(terminal_status))
                self.assertEqual(allowed_next_statuses(terminal_status), [])
                with self.assertRaises(JobTransitionError):
                    ensure_transition(terminal_status, JobStatus.ERROR)

    def test_milestones_increase_along_the_pipeline(self) -> None:
        ordered = [JobStatus.QUEUED, JobStatus.DOWNLOADING, JobStatus.PROCESSING, JobStatus.UPLOADING, JobStatus.DONE]
        progress = [STAGE_PROGRESS[status] for status in ordered]

        self.assertEqual(progress, [0, 5, 20, 85, 100])
        self.assertTrue(STAGE_PROGRESS[JobStatus.PROCESSING] < PROBED_PROGRESS < STAGE_PROGRESS[JobStatus.UPLOADING])

    def test_progress_never_moves_backwards(self) -> None:
        ensure_progress(20, 20)
        ensure_progress(20, 80)
        with self.assertRaises(JobTransitionError):
            ensure_progress(80, 20)
        with self.assertRaises(JobTransitionError):
            ensure_progress(0, 101)


if __name__ == "__main__":
    unittest.main()
