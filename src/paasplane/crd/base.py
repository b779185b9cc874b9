"""Base records for custom resources reconciled by paasplane."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ObjectMeta(BaseModel):
    """Standard Kubernetes object metadata."""

    name: str
    namespace: Optional[str] = None
    uid: Optional[str] = None
    generation: int = 0
    resourceVersion: Optional[str] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)
    finalizers: List[str] = Field(default_factory=list)
    deletionTimestamp: Optional[datetime] = None

    class Config:
        extra = "allow"


class Condition(BaseModel):
    """Status condition, at most one per type in a condition list."""

    type: str
    status: str  # True, False, Unknown
    reason: str
    message: str = ""
    observedGeneration: int = 0
    lastTransitionTime: Optional[datetime] = None


class CRDStatus(BaseModel):
    """Base class for all CRD status objects."""

    conditions: List[Condition] = Field(default_factory=list)
    observedGeneration: Optional[int] = None

    class Config:
        extra = "allow"


class CRDSpec(BaseModel):
    """Base class for all CRD spec objects."""

    class Config:
        extra = "forbid"
        validate_assignment = True


class CustomResource(BaseModel):
    """A reconcilable resource: identity, generation, finalizers and status.

    Concrete kinds narrow ``spec`` and ``status`` to their own records.
    """

    apiVersion: Optional[str] = None
    kind: Optional[str] = None
    metadata: ObjectMeta
    spec: CRDSpec = Field(default_factory=CRDSpec)
    status: CRDStatus = Field(default_factory=CRDStatus)

    class Config:
        extra = "allow"

    @classmethod
    def from_body(cls, body):
        return cls.model_validate(body)

    def to_body(self):
        return self.model_dump(mode="json", exclude_none=True)

    def deep_copy(self):
        return self.model_copy(deep=True)

    @property
    def name(self):
        return self.metadata.name

    @property
    def namespace(self):
        return self.metadata.namespace

    @property
    def generation(self):
        return self.metadata.generation

    @property
    def is_being_deleted(self):
        return self.metadata.deletionTimestamp is not None

    def has_finalizer(self, finalizer):
        return finalizer in self.metadata.finalizers

    def add_finalizer(self, finalizer):
        if finalizer not in self.metadata.finalizers:
            self.metadata.finalizers.append(finalizer)

    def remove_finalizer(self, finalizer):
        self.metadata.finalizers = [
            f for f in self.metadata.finalizers if f != finalizer
        ]


class NamespaceStatus(CRDStatus):
    """Status of a resource that owns a child namespace."""

    guid: Optional[str] = None
