"""Helpers over a list of status conditions.

A condition list holds at most one entry per type. Setting a condition
replaces the entry of the same type; the transition time only moves when
the status changes.
"""

from datetime import datetime, timezone

from paasplane.crd.base import Condition

READY = "Ready"

TRUE = "True"
FALSE = "False"
UNKNOWN = "Unknown"


def _now():
    return datetime.now(timezone.utc).replace(microsecond=0)


def find_status_condition(conditions, condition_type):
    for condition in conditions:
        if condition.type == condition_type:
            return condition
    return None


def set_status_condition(conditions, new_condition: Condition):
    """Set a condition in place, last write wins per type."""
    existing = find_status_condition(conditions, new_condition.type)
    if existing is None:
        if new_condition.lastTransitionTime is None:
            new_condition = new_condition.model_copy(
                update={"lastTransitionTime": _now()}
            )
        conditions.append(new_condition)
        return

    if existing.status != new_condition.status:
        existing.status = new_condition.status
        existing.lastTransitionTime = new_condition.lastTransitionTime or _now()

    existing.reason = new_condition.reason
    existing.message = new_condition.message
    existing.observedGeneration = new_condition.observedGeneration


def remove_status_condition(conditions, condition_type):
    for i, condition in enumerate(conditions):
        if condition.type == condition_type:
            del conditions[i]
            return True
    return False


def is_fresh(condition, generation):
    """A condition only describes the current spec if it observed its generation."""
    return condition is not None and condition.observedGeneration == generation


def is_status_condition_true(conditions, condition_type):
    condition = find_status_condition(conditions, condition_type)
    return condition is not None and condition.status == TRUE


def is_fresh_status_condition_true(conditions, condition_type, generation):
    condition = find_status_condition(conditions, condition_type)
    return is_fresh(condition, generation) and condition.status == TRUE


def get_condition_or_set_as_unknown(conditions, condition_type, generation):
    """Return the condition's status, recording it as Unknown when absent."""
    condition = find_status_condition(conditions, condition_type)
    if condition is not None:
        return condition.status

    set_status_condition(
        conditions,
        Condition(
            type=condition_type,
            status=UNKNOWN,
            reason=UNKNOWN,
            observedGeneration=generation,
        ),
    )
    return UNKNOWN
