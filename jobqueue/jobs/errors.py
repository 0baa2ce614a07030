"""Errors raised by the job queue."""


class JobQueueError(Exception):
    """Base class for job queue errors."""


class JobNotFoundError(JobQueueError):
    def __init__(self, job_id: str):
        super().__init__(f"Job '{job_id}' not found")
        self.job_id = job_id


class JobNotCompletedError(JobQueueError):
    def __init__(self, job_id: str, status: str):
        super().__init__(f"Job '{job_id}' is not completed (status: {status})")
        self.job_id = job_id
        self.status = status


class InvalidTransitionError(JobQueueError):
    """A lifecycle transition was requested from a state that does not allow it.

    Never expected to reach callers; seeing one means the scheduler has a bug.
    """

    def __init__(self, job_id: str, status: str, action: str):
        super().__init__(f"Cannot {action} job '{job_id}' in status '{status}'")
        self.job_id = job_id
        self.status = status
        self.action = action
