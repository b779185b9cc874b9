from unittest.mock import Mock, patch

import pytest

from paasplane.config import ControllerConfig
from paasplane.k8s.patching import PatchingReconciler
from paasplane.plugins.base import PluginBase
from paasplane.plugins.registry import PluginRegistry
from paasplane.plugins.workloads import WorkloadsPlugin
from paasplane.services.task_runner import TaskRunner


@pytest.fixture
def registry():
    registry = PluginRegistry()
    registry.clear()
    yield registry
    registry.clear()


class BrokenPlugin(PluginBase):
    name = "broken"
    version = "0.0.1"
    description = "Fails to initialise"
    models = []

    def _initialise_plugin(self, config):
        raise RuntimeError("no cluster")

    def register_handlers(self):
        pass


def test_registry_is_a_singleton(registry):
    assert PluginRegistry() is registry


def test_discovers_builtin_workloads_plugin(registry):
    assert registry.discover_plugins(builtin_only=True) == 1
    assert registry.list_plugin_names() == ["workloads"]
    assert not registry.register_plugin(WorkloadsPlugin())


def test_loads_external_entry_points(registry):
    entry_point = Mock()
    entry_point.name = "broken"
    entry_point.load.return_value = BrokenPlugin
    not_a_plugin = Mock()
    not_a_plugin.name = "other"
    not_a_plugin.load.return_value = dict

    with patch(
        "paasplane.plugins.registry.entry_points", return_value=[entry_point, not_a_plugin]
    ) as found:
        assert registry.discover_plugins() == 2

    found.assert_called_once_with(group="paasplane_plugins")
    assert sorted(registry.list_plugin_names()) == ["broken", "workloads"]


def test_failed_initialisation_is_reported(registry):
    registry.register_plugin(BrokenPlugin())

    assert registry.initialise_all_plugins(ControllerConfig()) == {"broken": False}
    assert not registry.get_plugin("broken")._initialised


def test_workloads_plugin_builds_reconcilers(store):
    plugin = WorkloadsPlugin()
    plugin.store = store

    assert plugin.initialise(ControllerConfig(containerRegistrySecretNames=["registry-creds"]))
    assert isinstance(plugin.org_reconciler, PatchingReconciler)
    assert isinstance(plugin.space_reconciler, PatchingReconciler)
    assert isinstance(plugin.task_runner, TaskRunner)
    assert plugin.reconcilers() == {"CFOrg": plugin.org_reconciler, "CFSpace": plugin.space_reconciler}

    plugin.shutdown()
    assert plugin.org_reconciler is None
    assert plugin.reconcilers() == {}


def test_unregistered_models_fail_initialisation():
    class Unregistered:
        pass

    class LooseModels(BrokenPlugin):
        name = "loose"
        models = [Unregistered]

        def _initialise_plugin(self, config):
            pass

    plugin = LooseModels()

    assert not plugin.initialise(ControllerConfig())
    assert not plugin._initialised
