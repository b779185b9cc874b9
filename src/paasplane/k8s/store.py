"""Access to the cluster store.

Objects are handled as plain dicts in their wire (camelCase) form, whatever
API serves them. ``Store`` defines the contract and the read-modify-write
helper, ``KubeStore`` implements it on top of the kubernetes client.
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod

import kubernetes
from kubernetes.client.exceptions import ApiException

from paasplane.errors import NotFoundError, StoreError, WatchOpenError, from_api_exception
from paasplane.k8s.watch import ADDED, EventStream

logger = logging.getLogger(__name__)

CREATED = "created"
UPDATED = "updated"
UNCHANGED = "unchanged"

MERGE_PATCH = "application/merge-patch+json"


def merge_patch(original, modified):
    """Compute the JSON merge patch turning ``original`` into ``modified``.

    Returns an empty dict when both are equal. Lists are replaced wholesale.
    """
    patch = {}
    for key in original.keys() - modified.keys():
        patch[key] = None

    for key, value in modified.items():
        if key not in original:
            patch[key] = value
            continue

        old = original[key]
        if isinstance(value, dict) and isinstance(old, dict):
            sub_patch = merge_patch(old, value)
            if sub_patch:
                patch[key] = sub_patch
        elif old != value:
            patch[key] = value

    return patch


def object_key(obj):
    meta = obj.get("metadata", {})
    return f"{meta.get('namespace') or ''}/{meta.get('name')}"


class Store(ABC):
    """Contract of the cluster store used by reconcilers and awaiters."""

    @abstractmethod
    def get(self, kind, name, namespace=None):
        """Return the object or raise NotFoundError."""

    @abstractmethod
    def create(self, kind, body):
        pass

    @abstractmethod
    def patch(self, kind, name, patch, namespace=None):
        """Apply a JSON merge patch to everything but the status."""

    @abstractmethod
    def patch_status(self, kind, name, patch, namespace=None):
        """Apply a JSON merge patch to the status subresource."""

    @abstractmethod
    def list(self, kind, namespace=None, label_selector=None, field_selector=None):
        """Return the list of matching objects."""

    @abstractmethod
    def delete(self, kind, name, namespace=None, propagation_policy=None):
        pass

    @abstractmethod
    def watch(self, kind, namespace, name):
        """Open an EventStream on a single object.

        Raises WatchOpenError when the watch cannot be established.
        """

    def create_or_patch(self, kind, name, namespace, mutate):
        """Create the object or patch it so that ``mutate`` holds.

        ``mutate`` receives the object dict (a bare skeleton when it does not
        exist yet) and edits it in place. Nothing is written when the edit
        leaves the object unchanged. Patches are conditional on the
        resourceVersion that was read.

        Returns one of CREATED, UPDATED or UNCHANGED.
        """
        try:
            current = self.get(kind, name, namespace)
        except NotFoundError:
            obj = {
                "apiVersion": kind.api_version,
                "kind": kind.kind,
                "metadata": {"name": name},
            }
            if kind.namespaced:
                obj["metadata"]["namespace"] = namespace
            mutate(obj)
            self.create(kind, obj)
            return CREATED

        desired = copy.deepcopy(current)
        mutate(desired)
        patch = merge_patch(current, desired)
        if not patch:
            return UNCHANGED

        resource_version = current.get("metadata", {}).get("resourceVersion")
        if resource_version:
            patch.setdefault("metadata", {})["resourceVersion"] = resource_version
        self.patch(kind, name, patch, namespace)
        return UPDATED


class KubeStore(Store):
    """Store backed by the kubernetes python client.

    Built-in kinds go through the typed APIs (``read_namespaced_secret``,
    ``patch_namespace``, ...), custom kinds through ``CustomObjectsApi``.
    """

    _TYPED = {
        "Namespace": ("core", "namespace"),
        "Secret": ("core", "namespaced_secret"),
        "ServiceAccount": ("core", "namespaced_service_account"),
        "RoleBinding": ("rbac", "namespaced_role_binding"),
    }

    def __init__(self, api_client=None):
        self.api_client = api_client or kubernetes.client.ApiClient()
        self.core = kubernetes.client.CoreV1Api(self.api_client)
        self.rbac = kubernetes.client.RbacAuthorizationV1Api(self.api_client)
        self.custom = kubernetes.client.CustomObjectsApi(self.api_client)

    def _typed(self, kind, verb):
        if kind.kind not in self._TYPED:
            raise StoreError(f"Unsupported built-in kind: {kind}")
        api_name, stem = self._TYPED[kind.kind]
        return getattr(getattr(self, api_name), f"{verb}_{stem}")

    def _scope(self, kind, namespace):
        return (namespace,) if kind.namespaced else ()

    def _custom_args(self, kind, namespace):
        if kind.namespaced:
            return (kind.group, kind.version, namespace, kind.plural)
        return (kind.group, kind.version, kind.plural)

    def _custom(self, verb, kind):
        scope = "namespaced" if kind.namespaced else "cluster"
        return getattr(self.custom, verb.format(scope=scope))

    def _to_dict(self, obj):
        return self.api_client.sanitize_for_serialization(obj)

    def _call(self, what, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except ApiException as e:
            raise from_api_exception(e, what) from e

    def get(self, kind, name, namespace=None):
        what = f"get {kind} {namespace or ''}/{name}"
        if kind.is_builtin:
            fn = self._typed(kind, "read")
            return self._to_dict(
                self._call(what, fn, name, *self._scope(kind, namespace))
            )
        fn = self._custom("get_{scope}_custom_object", kind)
        return self._call(what, fn, *self._custom_args(kind, namespace), name)

    def create(self, kind, body):
        namespace = body.get("metadata", {}).get("namespace")
        what = f"create {kind} {object_key(body)}"
        if kind.is_builtin:
            fn = self._typed(kind, "create")
            return self._to_dict(
                self._call(what, fn, *self._scope(kind, namespace), body)
            )
        fn = self._custom("create_{scope}_custom_object", kind)
        return self._call(what, fn, *self._custom_args(kind, namespace), body)

    def patch(self, kind, name, patch, namespace=None):
        what = f"patch {kind} {namespace or ''}/{name}"
        if kind.is_builtin:
            fn = self._typed(kind, "patch")
            return self._to_dict(
                self._call(
                    what,
                    fn,
                    name,
                    *self._scope(kind, namespace),
                    patch,
                    _content_type=MERGE_PATCH,
                )
            )
        fn = self._custom("patch_{scope}_custom_object", kind)
        return self._call(what, fn, *self._custom_args(kind, namespace), name, patch)

    def patch_status(self, kind, name, patch, namespace=None):
        what = f"patch status of {kind} {namespace or ''}/{name}"
        if kind.is_builtin:
            raise StoreError(f"{what}: status patches are only supported for custom kinds")
        fn = self._custom("patch_{scope}_custom_object_status", kind)
        return self._call(what, fn, *self._custom_args(kind, namespace), name, patch)

    def _list_raw(self, kind, namespace=None, label_selector=None, field_selector=None):
        what = f"list {kind} in {namespace or 'all namespaces'}"
        kwargs = {}
        if label_selector:
            kwargs["label_selector"] = label_selector
        if field_selector:
            kwargs["field_selector"] = field_selector

        if kind.is_builtin:
            fn = self._typed(kind, "list")
            result = self._to_dict(
                self._call(what, fn, *self._scope(kind, namespace), **kwargs)
            )
        else:
            fn = self._custom("list_{scope}_custom_object", kind)
            result = self._call(what, fn, *self._custom_args(kind, namespace), **kwargs)

        for item in result.get("items") or []:
            item.setdefault("apiVersion", kind.api_version)
            item.setdefault("kind", kind.kind)
        return result

    def list(self, kind, namespace=None, label_selector=None, field_selector=None):
        return self._list_raw(kind, namespace, label_selector, field_selector).get("items") or []

    def delete(self, kind, name, namespace=None, propagation_policy=None):
        what = f"delete {kind} {namespace or ''}/{name}"
        kwargs = {}
        if propagation_policy:
            kwargs["propagation_policy"] = propagation_policy
        if kind.is_builtin:
            fn = self._typed(kind, "delete")
            self._call(what, fn, name, *self._scope(kind, namespace), **kwargs)
            return
        fn = self._custom("delete_{scope}_custom_object", kind)
        self._call(what, fn, *self._custom_args(kind, namespace), name, **kwargs)

    def watch(self, kind, namespace, name):
        field_selector = f"metadata.name={name}"
        description = f"{kind} {namespace}/{name}"
        try:
            listing = self._list_raw(kind, namespace, field_selector=field_selector)
        except StoreError as e:
            raise WatchOpenError(f"failed to open watch on {description}: {e}") from e

        stream = EventStream(description)
        for item in listing.get("items") or []:
            stream.put(ADDED, item)

        if kind.is_builtin:
            list_fn = self._typed(kind, "list")
            args = self._scope(kind, namespace)
        else:
            list_fn = self._custom("list_{scope}_custom_object", kind)
            args = self._custom_args(kind, namespace)

        watcher = kubernetes.watch.Watch()
        resource_version = (listing.get("metadata") or {}).get("resourceVersion")

        def pump():
            try:
                for event in watcher.stream(
                    list_fn,
                    *args,
                    field_selector=field_selector,
                    resource_version=resource_version,
                ):
                    stream.put(event["type"], event["raw_object"])
            except Exception as e:
                if not stream.stopped:
                    logger.debug(f"Watch on {description} ended: {e}")
                    stream.fail(e)

        stream.on_stop(watcher.stop)
        threading.Thread(target=pump, name=f"watch-{name}", daemon=True).start()
        return stream
