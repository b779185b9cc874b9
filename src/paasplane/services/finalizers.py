""" Finalizer chain for namespace-backed resources.

A finalizer exposes ``finalize(obj) -> ReconcileResult``. The namespace
finalizer runs its delegate first and only deletes the child namespace once
the delegate reports it is done. The resource's own finalizer token is
removed only when the namespace is gone.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from paasplane.crd.registry import kind_of
from paasplane.errors import NotFoundError
from paasplane.k8s import kinds
from paasplane.k8s.result import DONE, ReconcileResult
from paasplane.models.workloads import CFApp

logger = logging.getLogger(__name__)

NAMESPACE_DELETION_REQUEUE = 1.0
APP_DELETION_REQUEUE = 0.5


class Finalizer(ABC):
    @abstractmethod
    def finalize(self, obj) -> ReconcileResult:
        pass


class NoopFinalizer(Finalizer):
    def finalize(self, obj):
        return DONE


class NamespaceFinalizer(Finalizer):
    """Deletes the child namespace after the delegate finished.

    Args:
        store: Cluster store
        delegate: Finalizer run before the namespace is deleted
        finalizer_name: Finalizer token guarding the resource
    """

    def __init__(self, store, delegate, finalizer_name):
        self.store = store
        self.delegate = delegate
        self.finalizer_name = finalizer_name

    def finalize(self, obj):
        if not obj.has_finalizer(self.finalizer_name):
            return DONE

        # Both a requeue and an error mean the delegate has not finished
        result = self.delegate.finalize(obj)
        if result:
            return result

        try:
            self.store.delete(kinds.NAMESPACE, obj.name)
        except NotFoundError:
            obj.remove_finalizer(self.finalizer_name)
            logger.info(f"Namespace {obj.name} is gone, removed finalizer {self.finalizer_name}")
            return DONE

        logger.debug(f"Namespace {obj.name} deletion in progress")
        return ReconcileResult.requeue_in(NAMESPACE_DELETION_REQUEUE)


class SpaceAppsFinalizer(Finalizer):
    """Cascade-deletes the apps of a space, for at most ``app_deletion_timeout`` seconds.

    Past the deadline the finalizer gives up and reports success so that
    deletion of the space is never blocked forever. Apps still present at
    that point are left for the namespace deletion to take down.
    """

    def __init__(self, store, app_deletion_timeout):
        self.store = store
        self.app_deletion_timeout = app_deletion_timeout
        self.app_kind = kind_of(CFApp)

    def finalize(self, obj):
        deletion_time = obj.metadata.deletionTimestamp
        elapsed = (datetime.now(timezone.utc) - deletion_time).total_seconds()
        if elapsed >= self.app_deletion_timeout:
            logger.warning(
                f"Timed out deleting apps of space {obj.namespace}/{obj.name} "
                f"after {self.app_deletion_timeout}s, proceeding with namespace deletion"
            )
            return DONE

        apps = self.store.list(self.app_kind, obj.name)
        if not apps:
            return DONE

        for app in apps:
            app_name = app["metadata"]["name"]
            if app["metadata"].get("deletionTimestamp"):
                continue
            try:
                self.store.delete(
                    self.app_kind, app_name, obj.name, propagation_policy="Background"
                )
            except NotFoundError:
                continue
            logger.info(f"Deleting app {obj.name}/{app_name}")

        return ReconcileResult.requeue_in(APP_DELETION_REQUEUE)
