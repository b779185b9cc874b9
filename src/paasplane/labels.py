"""Label/annotation compiler merging process-wide defaults with per-call values."""


class LabelCompiler:
    """Immutable: ``defaults`` returns a new compiler, the receiver is unchanged,
    so one instance can be shared by every reconciler.
    """

    def __init__(self, defaults=None):
        self._defaults = dict(defaults or {})

    def defaults(self, values):
        merged = dict(self._defaults)
        merged.update(values or {})
        return LabelCompiler(merged)

    def compile(self, overrides=None):
        result = dict(self._defaults)
        result.update(overrides or {})
        return result


def new_compiler():
    return LabelCompiler()
