"""Blocks a caller until a watched object reaches a state, or times out."""

import logging
import time

from paasplane.crd.registry import kind_of
from paasplane.errors import AwaitTimeoutError, WatchOpenError
from paasplane.k8s import conditions
from paasplane.k8s.watch import DELETED

logger = logging.getLogger(__name__)


class ConditionAwaiter:
    """Watch-based awaiter with a fixed timeout.

    Args:
        timeout: Seconds to wait before giving up
        model: Registered CustomResource subclass of the awaited kind
    """

    def __init__(self, timeout, model):
        self.timeout = timeout
        self.model = model
        self.kind = kind_of(model)

    def await_condition(self, store, obj, condition_type):
        """Wait until ``condition_type`` is True for the current generation."""

        def check_condition(candidate):
            if not conditions.is_fresh_status_condition_true(
                candidate.status.conditions, condition_type, candidate.generation
            ):
                raise ValueError(f"expected the {condition_type} condition to be true")

        return self.await_state(
            store, obj, check_condition, f"{condition_type} condition"
        )

    def await_state(self, store, obj, check_state, description="expected state"):
        """Wait until ``check_state(candidate)`` stops raising.

        The watch is released on every exit path.
        """
        namespace, name = obj.namespace, obj.name
        try:
            stream = store.watch(self.kind, namespace, name)
        except WatchOpenError:
            raise
        except Exception as e:
            raise WatchOpenError(f"failed to watch {self.kind.kind} {namespace}/{name}: {e}") from e

        deadline = time.monotonic() + self.timeout
        last_reason = None
        try:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise AwaitTimeoutError(
                        f"{self.kind.kind} {namespace}/{name} did not get the {description} "
                        f"within timeout period {int(self.timeout * 1000)} ms"
                        + (f": {last_reason}" if last_reason else "")
                    )

                event = stream.next(timeout=remaining)
                if event is None or event.type == DELETED:
                    continue

                candidate = self.model.from_body(event.object)
                try:
                    check_state(candidate)
                except Exception as e:
                    last_reason = str(e)
                    logger.debug(f"{self.kind.kind} {namespace}/{name} not there yet: {e}")
                    continue

                return candidate
        finally:
            stream.stop()
