# pos_outbox/core/exceptions.py


class OutboxError(Exception):
    """Base class for errors raised by the outbox engine."""


class DurableStoreError(OutboxError):
    """The local durable store could not persist or read the queue.

    Raised to the caller of ``enqueue``/``clear``; the operation is never
    dropped silently.
    """


class ClearNotConfirmedError(OutboxError):
    """Clearing the offline queue was requested without confirmation."""


class PrintJobNotFoundError(OutboxError):
    def __init__(self, job_id):
        super().__init__(f"Print job {job_id} not found")
        self.job_id = job_id


class TenantRequiredError(OutboxError):
    """A print-queue call was made without a tenant scope."""
