""" Synchronous task creation: create a CFTask and wait for it to be picked up.
"""

import logging
import uuid

from paasplane.crd.registry import kind_of
from paasplane.k8s.awaiter import ConditionAwaiter
from paasplane.models.workloads import (
    GROUP,
    TASK_INITIALIZED_CONDITION,
    VERSION,
    CFTask,
)

logger = logging.getLogger(__name__)


class TaskRunner:
    """Creates tasks and blocks until a task condition is reached.

    Args:
        store: Cluster store
        timeout: Seconds to wait for a condition
    """

    def __init__(self, store, timeout):
        self.store = store
        self.kind = kind_of(CFTask)
        self.awaiter = ConditionAwaiter(timeout, CFTask)

    def create_task(self, namespace, app_name, command, name=None):
        """ Create a task for an app and wait until it is initialised.

        Returns:
            The CFTask as observed once initialised
        """
        task = CFTask(
            apiVersion=f"{GROUP}/{VERSION}",
            kind="CFTask",
            metadata={"name": name or str(uuid.uuid4()), "namespace": namespace},
            spec={"command": list(command), "appRef": {"name": app_name}},
        )
        created = CFTask.from_body(self.store.create(self.kind, task.to_body()))
        logger.info(f"Created task {namespace}/{created.name} for app {app_name}")

        return self.awaiter.await_condition(self.store, created, TASK_INITIALIZED_CONDITION)

    def wait_for(self, namespace, name, condition_type):
        """ Wait until an existing task reaches ``condition_type``.
        """
        task = CFTask.from_body(self.store.get(self.kind, name, namespace))
        return self.awaiter.await_condition(self.store, task, condition_type)
