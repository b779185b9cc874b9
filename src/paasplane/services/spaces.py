""" Space reconciler: a space owns a namespace below its org's namespace.

On top of the namespace lifecycle, service accounts flagged for propagation
in the root namespace are copied into every space.
"""

import logging

from paasplane.errors import NotReadyError, PaasplaneError
from paasplane.k8s import conditions
from paasplane.k8s.patching import PatchingReconciler
from paasplane.k8s.ready import ReadyConditionBuilder
from paasplane.models.workloads import CFSPACE_FINALIZER, CFSpace
from paasplane.services import propagation
from paasplane.services.finalizers import NamespaceFinalizer, SpaceAppsFinalizer
from paasplane.services.namespace_reconciler import NamespaceReconciler

logger = logging.getLogger(__name__)

SPACE_GUID_LABEL = "paasplane.io/space-guid"
SPACE_NAME_KEY = "paasplane.io/space-name"

SERVICE_ACCOUNT_PROPAGATION_REASON = "ServiceAccountPropagation"


class SpaceMetadataCompiler:
    def __init__(self, label_compiler):
        self.label_compiler = label_compiler

    def compile_labels(self, space):
        return self.label_compiler.compile({SPACE_GUID_LABEL: space.name})

    def compile_annotations(self, space):
        return {SPACE_NAME_KEY: space.spec.displayName}


class SpaceReconciler:
    def __init__(self, store, namespace_reconciler, root_namespace, container_registry_secret_names):
        self.store = store
        self.namespace_reconciler = namespace_reconciler
        self.root_namespace = root_namespace
        self.container_registry_secret_names = list(container_registry_secret_names or [])

    def reconcile_resource(self, space):
        builder = ReadyConditionBuilder(space)
        try:
            result = self.namespace_reconciler.reconcile_resource(space)
            if result or space.is_being_deleted:
                return result

            try:
                propagation.propagate_service_accounts(
                    self.store,
                    self.root_namespace,
                    space.name,
                    self.container_registry_secret_names,
                )
            except PaasplaneError as e:
                logger.info(
                    f"{space.namespace}/{space.name} not ready yet: "
                    f"error propagating service accounts: {e}"
                )
                raise NotReadyError(
                    SERVICE_ACCOUNT_PROPAGATION_REASON,
                    message=f"error propagating service accounts: {e}",
                    cause=e,
                ) from e

            builder.ready()
            return result
        except Exception as e:
            builder.with_error(e)
            raise
        finally:
            conditions.set_status_condition(space.status.conditions, builder.build())


def new_space_reconciler(
    store,
    label_compiler,
    container_registry_secret_names,
    root_namespace,
    app_deletion_timeout,
):
    """ Build the patching reconciler for CFSpace resources.
    """
    namespace_reconciler = NamespaceReconciler(
        store,
        NamespaceFinalizer(
            store, SpaceAppsFinalizer(store, app_deletion_timeout), CFSPACE_FINALIZER
        ),
        CFSPACE_FINALIZER,
        SpaceMetadataCompiler(label_compiler),
        container_registry_secret_names,
    )
    return PatchingReconciler(
        store,
        CFSpace,
        SpaceReconciler(
            store, namespace_reconciler, root_namespace, container_registry_secret_names
        ),
    )
