from datetime import datetime, timezone

from paasplane.crd.base import Condition
from paasplane.k8s import conditions


def make_condition(status, reason="Testing", generation=1, condition_type="Ready"):
    return Condition(
        type=condition_type,
        status=status,
        reason=reason,
        observedGeneration=generation,
    )


def test_set_condition_appends_once_per_type():
    items = []
    conditions.set_status_condition(items, make_condition(conditions.FALSE))
    conditions.set_status_condition(items, make_condition(conditions.TRUE, reason="Ready"))
    conditions.set_status_condition(items, make_condition(conditions.TRUE, condition_type="Other"))

    assert [c.type for c in items] == ["Ready", "Other"]
    ready = conditions.find_status_condition(items, "Ready")
    assert ready.status == conditions.TRUE
    assert ready.reason == "Ready"


def test_transition_time_only_moves_on_status_change():
    earlier = datetime(2020, 1, 1, tzinfo=timezone.utc)
    items = [
        Condition(
            type="Ready",
            status=conditions.FALSE,
            reason="A",
            lastTransitionTime=earlier,
        )
    ]

    conditions.set_status_condition(items, make_condition(conditions.FALSE, reason="B"))
    assert items[0].lastTransitionTime == earlier
    assert items[0].reason == "B"

    conditions.set_status_condition(items, make_condition(conditions.TRUE, reason="C"))
    assert items[0].lastTransitionTime > earlier


def test_remove_condition():
    items = [make_condition(conditions.TRUE)]
    assert conditions.remove_status_condition(items, "Ready")
    assert not conditions.remove_status_condition(items, "Ready")
    assert items == []


def test_fresh_condition_requires_current_generation():
    items = [make_condition(conditions.TRUE, generation=1)]

    assert conditions.is_status_condition_true(items, "Ready")
    assert conditions.is_fresh_status_condition_true(items, "Ready", 1)
    assert not conditions.is_fresh_status_condition_true(items, "Ready", 2)
    assert not conditions.is_fresh_status_condition_true(items, "Missing", 1)


def test_get_condition_or_set_as_unknown():
    items = []
    assert conditions.get_condition_or_set_as_unknown(items, "Ready", 3) == conditions.UNKNOWN
    assert items[0].status == conditions.UNKNOWN
    assert items[0].observedGeneration == 3

    items[0].status = conditions.TRUE
    assert conditions.get_condition_or_set_as_unknown(items, "Ready", 4) == conditions.TRUE
    assert len(items) == 1
