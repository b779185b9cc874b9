import kopf
import logging
import kubernetes
import os

from paasplane.config import load_config
from paasplane.plugins.registry import PluginRegistry

logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Set on startup; handlers look their plugin up here
plugin_registry = None


def load_kube_config():
    """Use the service account when running in a pod, else the local kube config."""
    try:
        kubernetes.config.load_incluster_config()
        logger.info("Using in-cluster service account credentials")
        return
    except kubernetes.config.ConfigException:
        pass

    try:
        kubernetes.config.load_kube_config()
        logger.info("Using local kube config")
    except Exception as e:
        logger.warning(f"No Kubernetes credentials found: {e}")


def start_plugins(config):
    """Discover and initialise plugins, then register their handlers.

    Raises:
        RuntimeError: when no plugin is left to serve events
    """
    registry = PluginRegistry()
    if not registry.discover_plugins():
        raise RuntimeError("No plugins found, nothing would be reconciled")

    results = registry.initialise_all_plugins(config)
    if not any(results.values()):
        raise RuntimeError(f"Every plugin failed to initialise: {sorted(results)}")

    registry.register_all_handlers()
    return registry


def apply_settings(settings, config):
    settings.batching.worker_limit = config.workerLimit
    settings.posting.enabled = config.postingEnabled
    settings.watching.server_timeout = config.serverTimeout


@kopf.on.startup()
def startup_fn(settings: kopf.OperatorSettings, **kwargs):
    global plugin_registry

    load_kube_config()
    # An invalid config stops the operator here
    config = load_config()

    plugin_registry = start_plugins(config)
    apply_settings(settings, config)

    logger.info(
        f"paasplane started: plugins {plugin_registry.list_plugin_names()}, "
        f"root namespace {config.rootNamespace}, "
        f"{config.workerLimit} workers, event posting {'on' if config.postingEnabled else 'off'}"
    )


@kopf.on.cleanup()
def cleanup_fn(**kwargs):
    if plugin_registry:
        plugin_registry.shutdown_all_plugins()
    logger.info("paasplane stopped")


def main():
    try:
        kopf.run(clusterwide=True)
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")


if __name__ == "__main__":
    main()
