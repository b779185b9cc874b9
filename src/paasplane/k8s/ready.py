"""Builds the Ready condition a reconciler records on every exit path.

Typical use inside a domain reconcile function::

    builder = ReadyConditionBuilder(obj)
    try:
        ...
        builder.ready()
    except Exception as e:
        builder.with_error(e)
        raise
    finally:
        set_status_condition(obj.status.conditions, builder.build())
"""

from paasplane.crd.base import Condition
from paasplane.errors import NotReadyError
from paasplane.k8s import conditions

DEFAULT_NOT_READY_REASON = "NotReady"


class ReadyConditionBuilder:
    def __init__(self, obj):
        self._obj = obj
        self._status = conditions.UNKNOWN
        self._reason = conditions.UNKNOWN
        self._message = ""
        self._reason_set = False

    def with_reason(self, reason):
        self._reason = reason
        self._reason_set = True
        return self

    def with_message(self, message):
        self._message = message
        return self

    def with_error(self, err):
        """Mark the condition False; a NotReadyError supplies its own reason."""
        if err is None:
            return self

        self._status = conditions.FALSE
        self._message = str(err)
        if isinstance(err, NotReadyError):
            self._reason = err.reason
        elif not self._reason_set:
            self._reason = DEFAULT_NOT_READY_REASON
        return self

    def ready(self):
        self._status = conditions.TRUE
        self._reason = "Ready"
        self._message = ""
        return self

    def build(self) -> Condition:
        return Condition(
            type=conditions.READY,
            status=self._status,
            reason=self._reason,
            message=self._message,
            observedGeneration=self._obj.generation,
        )


def build_ready_condition(obj, err=None, reason=None):
    """One-shot form: Ready=True without an error, Ready=False otherwise."""
    builder = ReadyConditionBuilder(obj)
    if reason:
        builder.with_reason(reason)
    if err is None:
        return builder.ready().build()
    return builder.with_error(err).build()
