""" Propagation of secrets, role-bindings and service accounts into child namespaces.

Every copy carries a back-reference label naming its source namespace. The
set of previously propagated objects is always found through that label,
and anything in it that is no longer a candidate is deleted unless it is
annotated ``paasplane.io/propagate-deletion: "false"``.
"""

import logging

from paasplane.errors import NotFoundError, PropagationError, StoreError
from paasplane.k8s import kinds

logger = logging.getLogger(__name__)

PROPAGATE_ANNOTATION = "paasplane.io/propagate"
PROPAGATE_DELETION_ANNOTATION = "paasplane.io/propagate-deletion"
PROPAGATED_FROM_LABEL = "paasplane.io/propagated-from"

# Deployment tools track ownership through these keys, copies must not carry them
PACKAGE_MANAGER_KEY_PREFIXES = ("meta.helm.sh/", "kapp.k14s.io/")


def remove_package_manager_keys(src):
    """ Return a copy of a label/annotation map without deployment tool keys.
    """
    if src is None:
        return None

    dest = {}
    for key, value in src.items():
        if key.startswith(PACKAGE_MANAGER_KEY_PREFIXES):
            logger.debug(f"Skipping propagation of package manager key {key}")
            continue
        dest[key] = value
    return dest


def _set_or_drop(obj, key, value):
    # Absent and empty are the same to the store, keep the diff empty
    if value:
        obj[key] = value
    else:
        obj.pop(key, None)


def _is_flagged(obj):
    annotations = obj.get("metadata", {}).get("annotations") or {}
    return annotations.get(PROPAGATE_ANNOTATION) == "true"


def propagate_objects(store, kind, source_namespace, target_namespace, sources, copy_fields):
    """ Create-or-patch a copy of each source object in the target namespace.

    Args:
        store: Store to write to
        kind: Kind of the propagated objects
        source_namespace: Namespace the sources live in
        target_namespace: Namespace receiving the copies
        sources: Source object dicts, the candidate set
        copy_fields: Callable(source, copy) copying the kind specific fields

    Returns:
        Names of the propagated objects
    """
    propagated = set()
    for source in sources:
        name = source["metadata"]["name"]

        def mutate(obj, source=source):
            metadata = obj.setdefault("metadata", {})
            src_meta = source.get("metadata", {})

            labels = remove_package_manager_keys(src_meta.get("labels")) or {}
            labels[PROPAGATED_FROM_LABEL] = source_namespace
            metadata["labels"] = labels
            _set_or_drop(
                metadata,
                "annotations",
                remove_package_manager_keys(src_meta.get("annotations")),
            )
            copy_fields(source, obj)

        try:
            result = store.create_or_patch(kind, name, target_namespace, mutate)
        except StoreError as e:
            raise PropagationError(
                f"error propagating {kind.kind} {name} from {source_namespace} "
                f"to {target_namespace}: {e}"
            ) from e

        logger.debug(f"{kind.kind} {target_namespace}/{name} propagated: {result}")
        propagated.add(name)

    return propagated


def prune_propagated(store, kind, source_namespace, target_namespace, keep):
    """ Delete copies from the source namespace that are not in ``keep``.

    Returns:
        Names of the deleted objects
    """
    selector = f"{PROPAGATED_FROM_LABEL}={source_namespace}"
    try:
        previously_propagated = store.list(kind, target_namespace, label_selector=selector)
    except StoreError as e:
        raise PropagationError(
            f"error listing propagated {kind.plural} in {target_namespace}: {e}"
        ) from e

    deleted = []
    for obj in previously_propagated:
        metadata = obj.get("metadata", {})
        name = metadata["name"]
        annotations = metadata.get("annotations") or {}
        if annotations.get(PROPAGATE_DELETION_ANNOTATION) == "false":
            continue
        if name in keep:
            continue

        try:
            store.delete(kind, name, target_namespace)
        except NotFoundError:
            pass
        except StoreError as e:
            raise PropagationError(
                f"error deleting {kind.kind} {target_namespace}/{name}: {e}"
            ) from e

        logger.info(f"Deleted stale propagated {kind.kind} {target_namespace}/{name}")
        deleted.append(name)

    return deleted


def _copy_secret(source, obj):
    _set_or_drop(obj, "type", source.get("type"))
    _set_or_drop(obj, "data", source.get("data"))
    _set_or_drop(obj, "stringData", source.get("stringData"))
    if source.get("immutable") is not None:
        obj["immutable"] = source["immutable"]
    else:
        obj.pop("immutable", None)


def propagate_secrets(store, source_namespace, target_namespace, secret_names):
    """ Propagate the allow-listed secrets and prune the ones no longer there.

    Allow-listed secrets missing from the source namespace are reported after
    the stale copies have been pruned.
    """
    if not secret_names:
        # Registry access comes from service account role association instead
        return set()

    sources = []
    missing = []
    for secret_name in secret_names:
        try:
            sources.append(store.get(kinds.SECRET, secret_name, source_namespace))
        except NotFoundError:
            missing.append(secret_name)
        except StoreError as e:
            raise PropagationError(
                f"error fetching secret {secret_name!r} from namespace {source_namespace!r}: {e}"
            ) from e

    propagated = propagate_objects(
        store, kinds.SECRET, source_namespace, target_namespace, sources, _copy_secret
    )
    prune_propagated(store, kinds.SECRET, source_namespace, target_namespace, propagated)

    if missing:
        raise PropagationError(
            f"secret(s) {', '.join(missing)} not found in namespace {source_namespace!r}"
        )

    logger.debug(f"All secrets propagated from {source_namespace} to {target_namespace}")
    return propagated


def _copy_role_binding(source, obj):
    _set_or_drop(obj, "subjects", source.get("subjects"))
    obj["roleRef"] = source["roleRef"]


def propagate_role_bindings(store, source_namespace, target_namespace):
    """ Propagate role-bindings annotated for propagation and prune the rest.
    """
    try:
        bindings = store.list(kinds.ROLE_BINDING, source_namespace)
    except StoreError as e:
        raise PropagationError(
            f"error listing role-bindings in {source_namespace}: {e}"
        ) from e

    candidates = [b for b in bindings if _is_flagged(b)]
    propagated = propagate_objects(
        store,
        kinds.ROLE_BINDING,
        source_namespace,
        target_namespace,
        candidates,
        _copy_role_binding,
    )
    prune_propagated(store, kinds.ROLE_BINDING, source_namespace, target_namespace, propagated)
    return propagated


def _is_own_secret_ref(service_account_name, ref):
    name = ref.get("name", "")
    return name.startswith(f"{service_account_name}-token-") or name.startswith(
        f"{service_account_name}-dockercfg-"
    )


def keep_secret_refs(service_account_name, refs):
    """ Keep the references the store generated for the service account itself.
    """
    return [ref for ref in refs or [] if _is_own_secret_ref(service_account_name, ref)]


def _allow_listed_refs(refs, secret_names):
    result = []
    for secret_name in secret_names:
        for ref in refs or []:
            if ref.get("name") == secret_name:
                result.append(ref)
                break
    return result


def propagate_service_accounts(store, source_namespace, target_namespace, secret_names):
    """ Propagate service accounts annotated for propagation and prune the rest.

    A copied service account only references its own generated secrets plus
    the allow-listed secrets; other references injected in the source
    namespace do not exist in the target one.
    """
    try:
        accounts = store.list(kinds.SERVICE_ACCOUNT, source_namespace)
    except StoreError as e:
        raise PropagationError(
            f"error listing service accounts in {source_namespace}: {e}"
        ) from e

    def copy_fields(source, obj):
        name = obj["metadata"]["name"]
        secrets = keep_secret_refs(name, obj.get("secrets")) + _allow_listed_refs(
            source.get("secrets"), secret_names
        )
        pull_secrets = keep_secret_refs(
            name, obj.get("imagePullSecrets")
        ) + _allow_listed_refs(source.get("imagePullSecrets"), secret_names)
        _set_or_drop(obj, "secrets", secrets)
        _set_or_drop(obj, "imagePullSecrets", pull_secrets)

    candidates = [a for a in accounts if _is_flagged(a)]
    propagated = propagate_objects(
        store,
        kinds.SERVICE_ACCOUNT,
        source_namespace,
        target_namespace,
        candidates,
        copy_fields,
    )
    prune_propagated(
        store, kinds.SERVICE_ACCOUNT, source_namespace, target_namespace, propagated
    )
    return propagated
