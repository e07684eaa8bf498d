"""Job lifecycle transition rules."""

from app.errors import JobTransitionError
from app.schemas.job import JobStatus

_TERMINAL_STATES: set[JobStatus] = {
    JobStatus.DONE,
    JobStatus.ERROR,
}

_ALLOWED_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.QUEUED: {JobStatus.DOWNLOADING, JobStatus.ERROR},
    JobStatus.DOWNLOADING: {JobStatus.PROCESSING, JobStatus.ERROR},
    JobStatus.PROCESSING: {JobStatus.UPLOADING, JobStatus.ERROR},
    JobStatus.UPLOADING: {JobStatus.DONE, JobStatus.ERROR},
    JobStatus.DONE: set(),
    JobStatus.ERROR: set(),
}

# Coarse milestones; the transcoder's own output is never parsed for progress.
STAGE_PROGRESS: dict[JobStatus, int] = {
    JobStatus.QUEUED: 0,
    JobStatus.DOWNLOADING: 5,
    JobStatus.PROCESSING: 20,
    JobStatus.UPLOADING: 85,
    JobStatus.DONE: 100,
}
PROBED_PROGRESS = 80


def is_terminal(status: JobStatus) -> bool:
    return status in _TERMINAL_STATES


def allowed_next_statuses(status: JobStatus) -> list[JobStatus]:
    """Return deterministically ordered allowed successors for a status."""
    return sorted(_ALLOWED_TRANSITIONS.get(status, set()), key=lambda s: s.value)


def ensure_transition(old_status: JobStatus, new_status: JobStatus) -> None:
    """Validate transition according to lifecycle rules."""
    if old_status in _TERMINAL_STATES:
        raise JobTransitionError(f"Terminal state {old_status.value} cannot be mutated")

    if new_status not in _ALLOWED_TRANSITIONS.get(old_status, set()):
        allowed = ", ".join(s.value for s in allowed_next_statuses(old_status))
        raise JobTransitionError(
            f"Invalid status transition {old_status.value} -> {new_status.value} (allowed: {allowed})"
        )


def ensure_progress(old_progress: int, new_progress: int) -> None:
    """Progress only moves forward while a job is alive."""
    if not 0 <= new_progress <= 100:
        raise JobTransitionError(f"Progress {new_progress} is outside 0..100")
    if new_progress < old_progress:
        raise JobTransitionError(f"Progress cannot move backwards ({old_progress} -> {new_progress})")
