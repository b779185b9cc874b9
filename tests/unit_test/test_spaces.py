import pytest

from paasplane.crd.registry import kind_of
from paasplane.errors import NotReadyError, StoreError
from paasplane.k8s import conditions, kinds
from paasplane.models.workloads import CFSPACE_FINALIZER, CFApp, CFSpace
from paasplane.services.finalizers import APP_DELETION_REQUEUE, NAMESPACE_DELETION_REQUEUE
from paasplane.services.propagation import PROPAGATE_ANNOTATION, PROPAGATED_FROM_LABEL
from paasplane.services.spaces import (
    SERVICE_ACCOUNT_PROPAGATION_REASON,
    SPACE_GUID_LABEL,
    SPACE_NAME_KEY,
    new_space_reconciler,
)

SPACE = kind_of(CFSpace)
APP = kind_of(CFApp)


@pytest.fixture
def space(store):
    return store.add(
        SPACE,
        {"metadata": {"name": "space-1", "namespace": "org-1"}, "spec": {"displayName": "dev"}},
    )


@pytest.fixture
def reconciler(store, label_compiler):
    return new_space_reconciler(store, label_compiler, ["registry-creds"], "cf", 60)


@pytest.fixture
def parent_objects(store):
    store.add(
        kinds.SECRET,
        {"metadata": {"name": "registry-creds", "namespace": "org-1"}, "data": {"k": "dg=="}},
    )
    store.add(
        kinds.SERVICE_ACCOUNT,
        {
            "metadata": {
                "name": "builder",
                "namespace": "cf",
                "annotations": {PROPAGATE_ANNOTATION: "true"},
            },
            "imagePullSecrets": [{"name": "registry-creds"}],
        },
    )


def stored_space(store):
    return CFSpace.from_body(store.peek(SPACE, "space-1", "org-1"))


def ready_of(space):
    return conditions.find_status_condition(space.status.conditions, conditions.READY)


def test_space_reconcile_propagates_everything(store, space, reconciler, parent_objects):
    assert not reconciler.reconcile("org-1", "space-1")

    persisted = stored_space(store)
    assert ready_of(persisted).status == conditions.TRUE
    assert persisted.has_finalizer(CFSPACE_FINALIZER)

    namespace = store.peek(kinds.NAMESPACE, "space-1")
    assert namespace["metadata"]["labels"][SPACE_GUID_LABEL] == "space-1"
    assert namespace["metadata"]["annotations"] == {SPACE_NAME_KEY: "dev"}

    secret = store.peek(kinds.SECRET, "registry-creds", "space-1")
    assert secret["metadata"]["labels"][PROPAGATED_FROM_LABEL] == "org-1"
    account = store.peek(kinds.SERVICE_ACCOUNT, "builder", "space-1")
    assert account["metadata"]["labels"][PROPAGATED_FROM_LABEL] == "cf"
    assert account["imagePullSecrets"] == [{"name": "registry-creds"}]


def test_service_account_failure_sets_reason(store, space, reconciler, parent_objects):
    store.fail_next("list", kinds.SERVICE_ACCOUNT, StoreError("unavailable", status=503))

    with pytest.raises(NotReadyError) as excinfo:
        reconciler.reconcile("org-1", "space-1")

    assert excinfo.value.reason == SERVICE_ACCOUNT_PROPAGATION_REASON
    ready = ready_of(stored_space(store))
    assert ready.status == conditions.FALSE
    assert ready.reason == SERVICE_ACCOUNT_PROPAGATION_REASON


def test_space_deletion_walks_the_finalizer_chain(store, space, reconciler, parent_objects):
    reconciler.reconcile("org-1", "space-1")
    store.add(
        APP,
        {"metadata": {"name": "app-1", "namespace": "space-1"}, "spec": {"displayName": "app"}},
    )
    store.delete(SPACE, "space-1", "org-1")

    assert reconciler.reconcile("org-1", "space-1").requeue_after == APP_DELETION_REQUEUE
    assert not store.exists(APP, "app-1", "space-1")
    assert store.count("delete", kinds.NAMESPACE) == 0

    assert reconciler.reconcile("org-1", "space-1").requeue_after == NAMESPACE_DELETION_REQUEUE
    assert store.count("delete", kinds.NAMESPACE) == 1
    assert stored_space(store).has_finalizer(CFSPACE_FINALIZER)

    store.purge_namespace("space-1")
    assert not reconciler.reconcile("org-1", "space-1")
    assert not store.exists(SPACE, "space-1", "org-1")


def test_deleted_space_is_never_marked_ready(store, space, reconciler, parent_objects):
    reconciler.reconcile("org-1", "space-1")
    store.delete(SPACE, "space-1", "org-1")

    reconciler.reconcile("org-1", "space-1")

    assert ready_of(stored_space(store)).status != conditions.TRUE
