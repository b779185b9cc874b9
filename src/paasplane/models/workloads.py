"""Workload CRD records: orgs, spaces, apps and tasks."""

from typing import List, Optional

from pydantic import Field

from paasplane.crd.base import CRDSpec, CRDStatus, CustomResource, NamespaceStatus
from paasplane.crd.registry import CRDRegistry

GROUP = "workloads.paasplane.io"
VERSION = "v1alpha1"

CFORG_FINALIZER = "cfOrg.paasplane.io"
CFSPACE_FINALIZER = "cfSpace.paasplane.io"

TASK_INITIALIZED_CONDITION = "Initialized"
TASK_STARTED_CONDITION = "Started"
TASK_SUCCEEDED_CONDITION = "Succeeded"
TASK_FAILED_CONDITION = "Failed"


class CFOrgSpec(CRDSpec):
    displayName: str = Field(..., description="Human-readable org name")


@CRDRegistry.register(GROUP, VERSION, "CFOrg", "cforgs")
class CFOrg(CustomResource):
    """An org: owns a namespace under the root namespace."""

    spec: CFOrgSpec
    status: NamespaceStatus = Field(default_factory=NamespaceStatus)


class CFSpaceSpec(CRDSpec):
    displayName: str = Field(..., description="Human-readable space name")


@CRDRegistry.register(GROUP, VERSION, "CFSpace", "cfspaces")
class CFSpace(CustomResource):
    """A space: owns a namespace under its org's namespace."""

    spec: CFSpaceSpec
    status: NamespaceStatus = Field(default_factory=NamespaceStatus)


class CFAppSpec(CRDSpec):
    displayName: str = Field(..., description="Human-readable app name")
    desiredState: str = Field(default="STOPPED", description="STARTED or STOPPED")


@CRDRegistry.register(GROUP, VERSION, "CFApp", "cfapps")
class CFApp(CustomResource):
    spec: CFAppSpec
    status: CRDStatus = Field(default_factory=CRDStatus)


class AppRef(CRDSpec):
    name: str


class CFTaskSpec(CRDSpec):
    command: List[str] = Field(default_factory=list)
    appRef: AppRef
    canceled: bool = False


class CFTaskStatus(CRDStatus):
    sequenceId: Optional[int] = None
    dropletRef: Optional[dict] = None


@CRDRegistry.register(GROUP, VERSION, "CFTask", "cftasks")
class CFTask(CustomResource):
    spec: CFTaskSpec
    status: CFTaskStatus = Field(default_factory=CFTaskStatus)
