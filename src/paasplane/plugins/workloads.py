"""Built-in plugin serving orgs, spaces and tasks."""

import logging

from .base import PluginBase

logger = logging.getLogger(__name__)


class WorkloadsPlugin(PluginBase):
    """Reconciles CFOrg and CFSpace resources into namespaces and runs CFTasks."""

    def __init__(self):
        super().__init__()
        self.org_reconciler = None
        self.space_reconciler = None
        self.task_runner = None

    @property
    def name(self) -> str:
        return "workloads"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def description(self) -> str:
        return "Org and space namespaces with their propagated secrets, bindings and service accounts"

    @property
    def models(self):
        from paasplane.models.workloads import CFApp, CFOrg, CFSpace, CFTask

        return [CFOrg, CFSpace, CFApp, CFTask]

    def reconcilers(self):
        built = {"CFOrg": self.org_reconciler, "CFSpace": self.space_reconciler}
        return {kind: reconciler for kind, reconciler in built.items() if reconciler is not None}

    def _initialise_plugin(self, config):
        from paasplane.k8s.store import KubeStore
        from paasplane.services.orgs import new_org_reconciler
        from paasplane.services.spaces import new_space_reconciler
        from paasplane.services.task_runner import TaskRunner

        if self.store is None:
            self.store = KubeStore()
        labels = config.label_compiler()
        secrets = config.containerRegistrySecretNames

        self.org_reconciler = new_org_reconciler(self.store, labels, secrets)
        self.space_reconciler = new_space_reconciler(
            self.store,
            labels,
            secrets,
            config.rootNamespace,
            config.spaceFinalizerAppDeletionTimeout,
        )
        self.task_runner = TaskRunner(self.store, config.conditionTimeout)

        logger.info(f"Root namespace {config.rootNamespace}, propagating registry secrets {secrets}")

    def _shutdown_plugin(self):
        self.org_reconciler = self.space_reconciler = self.task_runner = None

    def register_handlers(self):
        # The handler module registers its kopf decorators on import
        from paasplane.handlers import workloads_handler  # noqa: F401

        logger.info("Serving cforgs, cfspaces and their propagated objects")
