"""Error taxonomy for the development shell.

Fatal errors propagate up to the CLI, which prints a single abort message.
Per-component errors are collected into the boot report instead.
"""


class DevShellError(Exception):
    """Base class for all devshell errors."""


# === Fatal ===


class ConfigurationError(DevShellError):
    """Contradictory option combination (e.g. both --name and --sname)."""


class EnvironmentTakeoverError(DevShellError):
    """The interactive front-end could not be replaced."""

    def __init__(self, step: str, message: str):
        super().__init__(f"{message} (step: {step})")
        self.step = step


class ScriptExecutionError(DevShellError):
    """A script bundle could not be extracted, loaded or run."""

    def __init__(self, path: str, category: str, cause: BaseException, stack: str = ""):
        super().__init__(
            f"Couldn't run shell script {path!r} - {category}:{cause!r}\nStack: {stack}"
        )
        self.path = path
        self.category = category
        self.cause = cause
        self.stack = stack


class DuplicateRegistrationError(DevShellError):
    """The interactive loop was started a second time in this process."""


# === Per-component (non-fatal, reported) ===


class ComponentLoadError(DevShellError):
    def __init__(self, component: str, reason: str):
        super().__init__(f"{component}: {reason}")
        self.component = component
        self.reason = reason


class ComponentStartError(DevShellError):
    def __init__(self, component: str, reason: str):
        super().__init__(f"{component}: {reason}")
        self.component = component
        self.reason = reason


# === Platform ===


class NameConflictError(DevShellError):
    """A name is already registered to a live unit."""


class UnitGoneError(DevShellError):
    """The unit terminated before the operation reached it."""


class DistributionUnavailable(DevShellError):
    """The peer-discovery daemon is not reachable."""
