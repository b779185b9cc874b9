"""Plugin contract: a plugin contributes reconcilers for some kinds and the kopf handlers driving them."""

from abc import ABC, abstractmethod
import logging

from paasplane.crd.registry import kind_of

logger = logging.getLogger(__name__)


class PluginBase(ABC):
    """Base class for paasplane plugins.

    A plugin is built empty, then ``initialise`` hands it the controller
    config once the operator has a cluster connection. Subclasses build
    their reconcilers in ``_initialise_plugin`` and import their handler
    module in ``register_handlers``.
    """

    def __init__(self):
        self._initialised = False
        self.config = None
        # Tests preset an in-memory store before initialising
        self.store = None

    @property
    @abstractmethod
    def name(self):
        pass

    @property
    @abstractmethod
    def version(self):
        pass

    @property
    @abstractmethod
    def description(self):
        pass

    @property
    @abstractmethod
    def models(self):
        """Registered CustomResource classes this plugin is responsible for."""
        pass

    def reconcilers(self):
        """Map of kind name to the PatchingReconciler serving it, once initialised."""
        return {}

    def initialise(self, config):
        """Prepare the plugin for serving events.

        Returns:
            bool: False when the plugin could not be set up; the failure is logged
        """
        if self._initialised:
            logger.debug(f"{self.name} plugin is already initialised")
            return True

        try:
            # Unregistered models fail here, before anything is built
            kinds = ", ".join(kind_of(model).kind for model in self.models)
            logger.info(f"Setting up {self.name} plugin v{self.version} for {kinds or 'no kinds'}")
            self.config = config
            self._initialise_plugin(config)
        except Exception as e:
            logger.error(f"{self.name} plugin could not be set up: {e}")
            return False

        self._initialised = True
        return True

    def _initialise_plugin(self, config):
        pass

    def shutdown(self):
        """Release whatever the plugin built; errors are logged, not raised."""
        if not self._initialised:
            return

        logger.info(f"Stopping {self.name} plugin")
        try:
            self._shutdown_plugin()
        except Exception as e:
            logger.error(f"{self.name} plugin did not stop cleanly: {e}")
        self._initialised = False

    def _shutdown_plugin(self):
        pass

    @abstractmethod
    def register_handlers(self):
        """Import the module whose kopf decorators serve this plugin's kinds."""
        pass

