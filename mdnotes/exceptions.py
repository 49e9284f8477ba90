"""Errors raised by the mdnotes plugin runtime."""


class PluginError(Exception):
    """Base class for plugin runtime errors."""

    pass


class AlreadyInstalledError(PluginError):
    def __init__(self, plugin_id: str) -> None:
        super().__init__(f"Plugin '{plugin_id}' is already installed")
        self.plugin_id = plugin_id


class NotInstalledError(PluginError):
    def __init__(self, plugin_id: str) -> None:
        super().__init__(f"Plugin '{plugin_id}' is not installed")
        self.plugin_id = plugin_id


class PluginHookError(PluginError):
    """
    Wraps an exception raised from a plugin's own lifecycle hook.

    These are never raised to callers of the manager; the manager records
    the message on the installed plugin and keeps going.

    """

    phase = "hook"

    def __init__(self, plugin_id: str, original: BaseException) -> None:
        self.plugin_id = plugin_id
        self.original = original
        self.message = str(original) or type(original).__name__
        super().__init__(f"Plugin '{plugin_id}' failed during {self.phase}: {self.message}")


class ActivationError(PluginHookError):
    phase = "activation"


class DeactivationError(PluginHookError):
    phase = "deactivation"


class PersistenceError(PluginError):
    """The installed plugin table could not be read or written."""

    pass


class ContributionConflictError(PluginError):
    def __init__(self, kind: str, full_id: str) -> None:
        super().__init__(f"A {kind} with id '{full_id}' is already registered")
        self.kind = kind
        self.full_id = full_id


class ContextRevokedError(PluginError):
    def __init__(self, plugin_id: str) -> None:
        super().__init__(
            f"The context for plugin '{plugin_id}' was revoked when it was deactivated"
        )
        self.plugin_id = plugin_id


class NetworkTimeoutError(PluginError, TimeoutError):
    def __init__(self, url: str, timeout: float) -> None:
        super().__init__(f"Request to {url} timed out after {timeout}s")
        self.url = url
        self.timeout = timeout
