"""Exceptions for the pipeline definition module."""


class ConfigurationError(Exception):
    """Raised when a pipeline definition or setting is invalid.

    Configuration errors are fatal: the pipeline never starts.
    """

    def __init__(self, reason: str, source: str | None = None):
        self.reason = reason
        self.source = source
        location = f" ({source})" if source else ""
        super().__init__(f"Invalid pipeline configuration{location}: {reason}")


class CyclicDependencyError(ConfigurationError):
    """Raised when stage dependencies form a cycle."""

    def __init__(self, cycle: list[str], source: str | None = None):
        self.cycle = cycle
        super().__init__(
            f"dependency cycle detected: {' -> '.join(cycle)}", source=source
        )
