""" kopf bindings for CFOrg and CFSpace resources.

Every create/update/resume/delete event runs one patching reconcile pass.
Any event on a registry secret or a role-binding re-runs the passes of every
org or space living in that namespace; service account events in the root
namespace re-run every space. Whether the changed object is still flagged for
propagation is left to the pass, which also prunes.
"""

import logging

import kopf

from paasplane.crd.registry import kind_of
from paasplane.errors import NotReadyError, PaasplaneError
from paasplane.models.workloads import GROUP, VERSION, CFOrg, CFSpace

logger = logging.getLogger(__name__)

# Delay before retrying when the plugin is not ready to serve events
PLUGIN_UNAVAILABLE_DELAY = 10


def get_workloads_plugin():
    """ Get the WorkloadsPlugin.
    """
    from paasplane.main import plugin_registry

    if not plugin_registry:
        logger.error("Plugin registry not initialised")
        return None

    return plugin_registry.get_plugin("workloads")


def run_reconcile(reconciler, namespace, name, body=None):
    """ Run one reconcile pass and translate its outcome for kopf.

    A requeue directive becomes a ``kopf.TemporaryError`` with the requested
    delay. Any other error propagates so kopf retries with its backoff.
    """
    try:
        result = reconciler.reconcile(namespace, name)
    except NotReadyError as e:
        if body is not None:
            kopf.warn(body, reason=e.reason, message=e.message)
        if e.requeue_after > 0:
            raise kopf.TemporaryError(str(e), delay=e.requeue_after) from e
        raise

    if result:
        raise kopf.TemporaryError(
            f"{namespace}/{name} requeued", delay=result.requeue_after
        )
    logger.debug(f"Reconciled {namespace}/{name}")


def _reconciler_for(plugin, model):
    return plugin.reconcilers()[kind_of(model).kind]


def _reconcile(model, namespace, name, body):
    plugin = get_workloads_plugin()
    if not plugin or not plugin._initialised:
        raise kopf.TemporaryError(
            "Workloads plugin not available", delay=PLUGIN_UNAVAILABLE_DELAY
        )
    run_reconcile(_reconciler_for(plugin, model), namespace, name, body=body)


@kopf.on.resume(GROUP, VERSION, "cforgs")
@kopf.on.create(GROUP, VERSION, "cforgs")
@kopf.on.update(GROUP, VERSION, "cforgs")
@kopf.on.delete(GROUP, VERSION, "cforgs", optional=True)
def reconcile_org(body, name, namespace, **kwargs):
    """Reconcile a CFOrg into its namespace."""
    _reconcile(CFOrg, namespace, name, body)


@kopf.on.resume(GROUP, VERSION, "cfspaces")
@kopf.on.create(GROUP, VERSION, "cfspaces")
@kopf.on.update(GROUP, VERSION, "cfspaces")
@kopf.on.delete(GROUP, VERSION, "cfspaces", optional=True)
def reconcile_space(body, name, namespace, **kwargs):
    """Reconcile a CFSpace into its namespace."""
    _reconcile(CFSpace, namespace, name, body)


def fan_out(plugin, parent_namespace, models=(CFOrg, CFSpace)):
    """ Reconcile every resource of ``models`` living in ``parent_namespace``.

    A ``parent_namespace`` of None reconciles the resources in all namespaces.

    Returns:
        list: "namespace/name" of the resources that were reconciled
    """
    reconciled = []
    for model in models:
        items = plugin.store.list(kind_of(model), namespace=parent_namespace)
        reconciler = _reconciler_for(plugin, model)
        for item in items:
            meta = item.get("metadata", {})
            key = f"{meta.get('namespace')}/{meta.get('name')}"
            try:
                result = reconciler.reconcile(meta.get("namespace"), meta.get("name"))
            except PaasplaneError as e:
                # The resource's own handler retries and reports this failure
                logger.info(f"Fan-out reconcile of {key} did not complete: {e}")
                continue
            if result:
                logger.debug(f"Fan-out reconcile of {key} requested a requeue")
            reconciled.append(key)
    return reconciled


def _fan_out_plugin(namespace):
    plugin = get_workloads_plugin()
    if not plugin or not plugin._initialised or not namespace:
        return None
    return plugin


@kopf.on.event("v1", "secrets")
def on_secret_event(body, namespace, name, type, **kwargs):
    """Re-propagate a registry secret into the children of its namespace.

    Copies count too: an org namespace copy is the source of its spaces' copies.
    """
    plugin = _fan_out_plugin(namespace)
    if not plugin or name not in plugin.config.containerRegistrySecretNames:
        return

    logger.info(f"Registry secret {namespace}/{name} event {type}, reconciling children")
    fan_out(plugin, namespace)


@kopf.on.event("rbac.authorization.k8s.io", "v1", "rolebindings")
def on_role_binding_event(body, namespace, name, type, **kwargs):
    """Re-run propagation below a namespace whose role-bindings changed.

    Unflagged bindings count as well, so a dropped annotation prunes the copies.
    """
    plugin = _fan_out_plugin(namespace)
    if not plugin:
        return

    logger.info(f"Role binding {namespace}/{name} event {type}, reconciling children")
    fan_out(plugin, namespace)


@kopf.on.event("v1", "serviceaccounts")
def on_service_account_event(body, namespace, name, type, **kwargs):
    """Re-propagate root namespace service accounts into every space."""
    plugin = _fan_out_plugin(namespace)
    if not plugin or namespace != plugin.config.rootNamespace:
        return

    logger.info(f"Service account {namespace}/{name} event {type}, reconciling all spaces")
    fan_out(plugin, None, models=(CFSpace,))
