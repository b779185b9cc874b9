"""CRD records and registry for paasplane."""

from .registry import CRDRegistry, kind_of
from .base import Condition, CRDSpec, CRDStatus, CustomResource, NamespaceStatus, ObjectMeta

__all__ = [
    "CRDRegistry",
    "kind_of",
    "Condition",
    "CRDSpec",
    "CRDStatus",
    "CustomResource",
    "NamespaceStatus",
    "ObjectMeta",
]
