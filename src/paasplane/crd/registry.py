"""CRD Registry for the resource kinds paasplane reconciles."""

import logging

from paasplane.k8s.kinds import Kind

logger = logging.getLogger(__name__)


class CRDRegistry:
    """Global registry for CRD models."""

    _instance = None
    _initialised = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._models = {}
            cls._instance._initialised = False
        return cls._instance

    def __init__(self):
        if not self._initialised:
            self._models = {}
            self._initialised = True

    @classmethod
    def register(cls, group, version, kind, plural=None, scope="Namespaced"):
        """Decorator to register CRD models.

        Args:
            group: API group (e.g., 'workloads.paasplane.io')
            version: API version (e.g., 'v1alpha1')
            kind: Kind name (e.g., 'CFOrg')
            plural: Plural name (defaults to kind.lower() + 's')
            scope: 'Namespaced' or 'Cluster'
        """

        def decorator(model_class):
            if not hasattr(model_class, "__annotations__"):
                raise ValueError(
                    f"CRD model {model_class.__name__} must have type annotations"
                )

            model_class._crd_kind = Kind(
                group=group,
                version=version,
                kind=kind,
                plural=plural or f"{kind.lower()}s",
                namespaced=scope == "Namespaced",
            )

            registry_instance = cls()
            key = f"{group}/{version}/{kind}"
            registry_instance._models[key] = {
                "model": model_class,
                "kind": model_class._crd_kind,
                "scope": scope,
            }

            logger.debug(f"Registered CRD: {key}")
            return model_class

        return decorator

    def get_all_models(self):
        """Get all registered CRD models."""
        return self._models.copy()

    def get_model_by_key(self, group, version, kind):
        """Get a specific CRD model by its key."""
        key = f"{group}/{version}/{kind}"
        return self._models.get(key)

    def find_model(self, name):
        """Find a model by kind name or plural, case-insensitively."""
        name = name.lower()
        for model_info in self._models.values():
            kind = model_info["kind"]
            if name in (kind.kind.lower(), kind.plural):
                return model_info
        return None

    def list_registered_models(self):
        """List all registered model keys."""
        return list(self._models.keys())

    def clear_registry(self):
        """Clear all registered models (useful for testing)."""
        self._models.clear()


def kind_of(model_class):
    """Return the store Kind of a registered model class."""
    kind = getattr(model_class, "_crd_kind", None)
    if kind is None:
        raise ValueError(f"{model_class.__name__} is not a registered CRD model")
    return kind
