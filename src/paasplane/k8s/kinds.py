"""Descriptors for the kinds the control plane reads and writes."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Kind:
    """Identifies a resource kind in the cluster store.

    Core kinds have an empty group and are served by the typed client APIs,
    everything else goes through the custom objects API.
    """

    group: str
    version: str
    kind: str
    plural: str
    namespaced: bool = True

    @property
    def api_version(self):
        if not self.group:
            return self.version
        return f"{self.group}/{self.version}"

    @property
    def is_builtin(self):
        return self.group in ("", "rbac.authorization.k8s.io")

    def __str__(self):
        return f"{self.kind}.{self.group or 'core'}"


NAMESPACE = Kind("", "v1", "Namespace", "namespaces", namespaced=False)
SECRET = Kind("", "v1", "Secret", "secrets")
SERVICE_ACCOUNT = Kind("", "v1", "ServiceAccount", "serviceaccounts")
ROLE_BINDING = Kind("rbac.authorization.k8s.io", "v1", "RoleBinding", "rolebindings")
