"""Process-wide registry of the plugins the operator runs."""

import importlib
import inspect
import logging
from importlib.metadata import entry_points

from .base import PluginBase

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "paasplane_plugins"

BUILTIN_PLUGINS = ("paasplane.plugins.workloads",)


def _is_plugin_class(candidate):
    return (
        inspect.isclass(candidate)
        and issubclass(candidate, PluginBase)
        and not inspect.isabstract(candidate)
    )


class PluginRegistry:
    """Singleton holding one instance per plugin name."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._plugins = {}
        return cls._instance

    def discover_plugins(self, builtin_only=False):
        """Register the builtin plugins and, unless ``builtin_only``, the installed ones.

        Returns:
            int: how many plugins were newly registered
        """
        found = sum(self._register_module(module) for module in BUILTIN_PLUGINS)
        if not builtin_only:
            found += sum(
                self._register_entry_point(entry_point)
                for entry_point in entry_points(group=ENTRY_POINT_GROUP)
            )

        logger.info(f"Plugins available: {self.list_plugin_names()}")
        return found

    def _register_module(self, module_name):
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            logger.warning(f"Builtin plugin module {module_name} is unavailable: {e}")
            return 0

        registered = 0
        for _, plugin_class in inspect.getmembers(module, _is_plugin_class):
            # Plugins imported into the module from elsewhere are not its own
            if plugin_class.__module__ == module.__name__:
                registered += self.register_plugin(plugin_class())
        return registered

    def _register_entry_point(self, entry_point):
        try:
            plugin_class = entry_point.load()
        except Exception as e:
            logger.error(f"Entry point {entry_point.name} failed to load: {e}")
            return 0

        if not _is_plugin_class(plugin_class):
            logger.error(f"Entry point {entry_point.name} does not name a PluginBase subclass")
            return 0
        return self.register_plugin(plugin_class())

    def register_plugin(self, plugin):
        """Add a plugin; the first one registered under a name wins."""
        if not isinstance(plugin, PluginBase):
            logger.error(f"Refusing to register {type(plugin).__name__}: not a PluginBase")
            return False

        current = self._plugins.get(plugin.name)
        if current is not None:
            logger.warning(
                f"Ignoring {plugin.name} v{plugin.version}, v{current.version} is already registered"
            )
            return False

        self._plugins[plugin.name] = plugin
        logger.debug(f"Registered {plugin.name} plugin v{plugin.version}")
        return True

    def initialise_all_plugins(self, config):
        """Initialise every plugin with the controller config.

        Returns:
            dict: plugin name to whether it initialised
        """
        results = {name: plugin.initialise(config) for name, plugin in self._plugins.items()}
        failed = [name for name, ok in results.items() if not ok]
        if failed:
            logger.error(f"Plugins failed to initialise: {failed}")
        return results

    def register_all_handlers(self):
        for plugin in self._plugins.values():
            if plugin._initialised:
                plugin.register_handlers()
            else:
                logger.warning(f"Not serving events for {plugin.name}, it is not initialised")

    def shutdown_all_plugins(self):
        for plugin in self._plugins.values():
            plugin.shutdown()

    def get_plugin(self, name):
        return self._plugins.get(name)

    def list_plugin_names(self):
        return list(self._plugins)

    def clear(self):
        """Forget all plugins (tests)."""
        self._plugins.clear()
