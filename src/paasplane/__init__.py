"""Control plane reconciling PaaS orgs, spaces, apps and tasks on Kubernetes."""

__version__ = "0.1.0"
