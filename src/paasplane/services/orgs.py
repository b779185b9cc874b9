""" Org reconciler: an org owns a namespace below the root namespace.
"""

import logging

from paasplane.k8s import conditions
from paasplane.k8s.patching import PatchingReconciler
from paasplane.k8s.ready import ReadyConditionBuilder
from paasplane.models.workloads import CFORG_FINALIZER, CFOrg
from paasplane.services.finalizers import NamespaceFinalizer, NoopFinalizer
from paasplane.services.namespace_reconciler import NamespaceReconciler

logger = logging.getLogger(__name__)

ORG_GUID_LABEL = "paasplane.io/org-guid"
ORG_NAME_KEY = "paasplane.io/org-name"


class OrgMetadataCompiler:
    def __init__(self, label_compiler):
        self.label_compiler = label_compiler

    def compile_labels(self, org):
        return self.label_compiler.compile({ORG_GUID_LABEL: org.name})

    def compile_annotations(self, org):
        return {ORG_NAME_KEY: org.spec.displayName}


class OrgReconciler:
    def __init__(self, namespace_reconciler):
        self.namespace_reconciler = namespace_reconciler

    def reconcile_resource(self, org):
        builder = ReadyConditionBuilder(org)
        try:
            result = self.namespace_reconciler.reconcile_resource(org)
            if not result and not org.is_being_deleted:
                builder.ready()
            return result
        except Exception as e:
            builder.with_error(e)
            raise
        finally:
            conditions.set_status_condition(org.status.conditions, builder.build())


def new_org_reconciler(store, label_compiler, container_registry_secret_names):
    """ Build the patching reconciler for CFOrg resources.
    """
    namespace_reconciler = NamespaceReconciler(
        store,
        NamespaceFinalizer(store, NoopFinalizer(), CFORG_FINALIZER),
        CFORG_FINALIZER,
        OrgMetadataCompiler(label_compiler),
        container_registry_secret_names,
    )
    return PatchingReconciler(store, CFOrg, OrgReconciler(namespace_reconciler))
