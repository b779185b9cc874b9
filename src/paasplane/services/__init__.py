"""Business logic services for the paasplane operator."""

from . import finalizers
from . import namespace_reconciler
from . import orgs
from . import propagation
from . import spaces
from . import task_runner

__all__ = [
    "finalizers",
    "namespace_reconciler",
    "orgs",
    "propagation",
    "spaces",
    "task_runner",
]
