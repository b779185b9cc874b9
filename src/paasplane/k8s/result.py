"""Requeue directive returned by reconcile functions and finalizers."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ReconcileResult:
    """Either "done" (zero) or "come back after ``requeue_after`` seconds"."""

    requeue_after: float = 0.0

    def __bool__(self):
        return self.requeue_after > 0

    @classmethod
    def requeue_in(cls, seconds):
        return cls(requeue_after=seconds)


DONE = ReconcileResult()
