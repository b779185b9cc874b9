"""Generic reconcile entry point persisting spec and status once per pass.

The domain reconciler mutates the object it is handed; whatever happens
inside it, the changes are written back on the way out. This is how a
"not ready yet, reason X" condition set by a failing pass becomes visible
in the store.
"""

import logging

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from paasplane.crd.registry import kind_of
from paasplane.errors import ConflictError, NotFoundError, PaasplaneError
from paasplane.k8s.result import DONE
from paasplane.k8s.store import merge_patch

logger = logging.getLogger(__name__)

CONFLICT_RETRY_ATTEMPTS = 5


class PatchingReconciler:
    """Wraps an object reconciler exposing ``reconcile_resource(obj)``.

    Args:
        store: Store the object is read from and written back to
        model: Registered CustomResource subclass of the reconciled kind
        object_reconciler: Domain reconciler, returns a ReconcileResult
    """

    def __init__(self, store, model, object_reconciler):
        self.store = store
        self.model = model
        self.kind = kind_of(model)
        self.object_reconciler = object_reconciler

    def reconcile(self, namespace, name):
        try:
            body = self.store.get(self.kind, name, namespace)
        except NotFoundError:
            logger.info(f"{self.kind.kind} {namespace}/{name} no longer exists")
            return DONE

        obj = self.model.from_body(body)
        original = obj.deep_copy()

        try:
            return self.object_reconciler.reconcile_resource(obj)
        finally:
            # An error raised here replaces the domain error, which has
            # already been recorded as a condition.
            self._write_back(original, obj)

    def _write_back(self, original, obj):
        if (obj.namespace, obj.name) != (original.namespace, original.name):
            raise PaasplaneError(
                f"{self.kind.kind} {original.namespace}/{original.name} was renamed "
                f"to {obj.namespace}/{obj.name} during reconcile"
            )

        original_body = original.to_body()
        body = obj.to_body()

        status_patch = merge_patch(
            {"status": original_body.pop("status", {})},
            {"status": body.pop("status", {})},
        )
        spec_patch = merge_patch(original_body, body)
        resource_version = original.metadata.resourceVersion

        try:
            updated = self._patch(self.store.patch_status, obj, status_patch, resource_version)
            if updated:
                resource_version = updated.get("metadata", {}).get("resourceVersion")
            self._patch(self.store.patch, obj, spec_patch, resource_version)
        except NotFoundError:
            if not obj.is_being_deleted:
                raise
            logger.debug(f"{self.kind.kind} {obj.namespace}/{obj.name} was deleted")

    def _patch(self, patch_fn, obj, patch, resource_version):
        for attempt in Retrying(
            stop=stop_after_attempt(CONFLICT_RETRY_ATTEMPTS),
            wait=wait_exponential(multiplier=0.05, max=1),
            retry=retry_if_exception_type(ConflictError),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    current = self.store.get(self.kind, obj.name, obj.namespace)
                    resource_version = current["metadata"].get("resourceVersion")
                    logger.debug(
                        f"Conflict patching {self.kind.kind} {obj.namespace}/{obj.name}, "
                        f"retrying at resourceVersion {resource_version}"
                    )

                body = dict(patch)
                if body and resource_version:
                    body["metadata"] = {
                        **body.get("metadata", {}),
                        "resourceVersion": resource_version,
                    }
                return patch_fn(self.kind, obj.name, body, obj.namespace)
