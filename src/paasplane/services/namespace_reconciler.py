""" Namespace lifecycle reconciler for namespace-backed resources.

A namespace-backed resource owns one child namespace named after itself.
Each pass stops at the first step that cannot complete:

1. stamp the observed generation
2. on deletion, hand over to the finalizer chain
3. first-seen bookkeeping: Ready=Unknown, GUID, finalizer token
4. create-or-patch the child namespace
5. requeue until the namespace can be read back
6. propagate the allow-listed secrets
7. propagate role-bindings
"""

import logging

from paasplane.errors import NotReadyError, PaasplaneError, StoreError
from paasplane.k8s import conditions, kinds
from paasplane.k8s.ready import build_ready_condition
from paasplane.k8s.result import DONE, ReconcileResult
from paasplane.services import propagation

logger = logging.getLogger(__name__)

NAMESPACE_READ_REQUEUE = 0.1

NAMESPACE_CREATION_REASON = "NamespaceCreation"
SECRET_PROPAGATION_REASON = "RegistrySecretPropagation"
ROLE_BINDING_PROPAGATION_REASON = "RoleBindingPropagation"


def update_map(dest, values):
    """ Merge ``values`` into ``dest[...]`` without touching unrelated keys.
    """
    for key, value in values.items():
        dest[key] = value


class NamespaceReconciler:
    """ Reconciles the child namespace of a resource and its propagated objects.

    Args:
        store: Cluster store
        finalizer: Finalizer run when the resource is being deleted
        finalizer_name: Finalizer token the resource must carry
        metadata_compiler: Object with compile_labels(obj) and compile_annotations(obj)
        container_registry_secret_names: Secrets propagated from the parent namespace
    """

    def __init__(
        self,
        store,
        finalizer,
        finalizer_name,
        metadata_compiler,
        container_registry_secret_names=None,
    ):
        self.store = store
        self.finalizer = finalizer
        self.finalizer_name = finalizer_name
        self.metadata_compiler = metadata_compiler
        self.container_registry_secret_names = list(container_registry_secret_names or [])

    def reconcile_resource(self, obj) -> ReconcileResult:
        obj.status.observedGeneration = obj.generation
        logger.debug(f"Set observed generation {obj.generation} on {obj.namespace}/{obj.name}")

        if obj.is_being_deleted:
            return self.finalizer.finalize(obj)

        conditions.get_condition_or_set_as_unknown(
            obj.status.conditions, conditions.READY, obj.generation
        )
        obj.status.guid = obj.name
        obj.add_finalizer(self.finalizer_name)

        try:
            self.create_or_patch_namespace(obj)
        except PaasplaneError as e:
            self._set_not_ready(obj, f"error creating namespace: {e}", NAMESPACE_CREATION_REASON, e)

        try:
            self.store.get(kinds.NAMESPACE, obj.name)
        except StoreError as e:
            logger.info(f"Namespace {obj.name} not readable yet, requeueing: {e}")
            return ReconcileResult.requeue_in(NAMESPACE_READ_REQUEUE)

        try:
            propagation.propagate_secrets(
                self.store, obj.namespace, obj.name, self.container_registry_secret_names
            )
        except PaasplaneError as e:
            self._set_not_ready(obj, f"error propagating secrets: {e}", SECRET_PROPAGATION_REASON, e)

        try:
            propagation.propagate_role_bindings(self.store, obj.namespace, obj.name)
        except PaasplaneError as e:
            self._set_not_ready(
                obj, f"error propagating role-bindings: {e}", ROLE_BINDING_PROPAGATION_REASON, e
            )

        return DONE

    def create_or_patch_namespace(self, obj):
        labels = self.metadata_compiler.compile_labels(obj)
        annotations = self.metadata_compiler.compile_annotations(obj)

        def mutate(namespace):
            metadata = namespace.setdefault("metadata", {})
            update_map(metadata.setdefault("labels", {}), labels)
            update_map(metadata.setdefault("annotations", {}), annotations)
            # Keep the diff empty when there is nothing to set
            for key in ("labels", "annotations"):
                if not metadata[key]:
                    del metadata[key]

        result = self.store.create_or_patch(kinds.NAMESPACE, obj.name, None, mutate)
        logger.debug(f"Namespace {obj.name} reconciled: {result}")
        return result

    def _set_not_ready(self, obj, message, reason, cause):
        logger.info(f"{obj.namespace}/{obj.name} not ready yet: reason={reason} error={cause}")
        err = NotReadyError(reason, message=message, cause=cause)
        conditions.set_status_condition(
            obj.status.conditions, build_ready_condition(obj, err)
        )
        raise err from cause
