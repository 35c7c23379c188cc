from .dispatcher import JobDispatcher, JobOutcome, JobStatus, TickResult
from .sweeper import SweepResult, requeue_stuck_leads

__all__ = [
    "JobDispatcher",
    "JobOutcome",
    "JobStatus",
    "TickResult",
    "SweepResult",
    "requeue_stuck_leads",
]
