"""Exception hierarchy shared by the synthesizer, loader, and supervisor."""

from __future__ import annotations


class VeilBoxError(Exception):
    """Base class for all VeilBox errors."""


class ConfigurationError(VeilBoxError, ValueError):
    """Input rejected before any side effect took place."""


class UnsupportedModeError(ConfigurationError):
    def __init__(self, mode: str) -> None:
        super().__init__(f"unsupported mode {mode!r}")
        self.mode = mode


class UnsupportedTransportError(ConfigurationError):
    def __init__(self, transport: str) -> None:
        super().__init__(f"unsupported transport {transport!r}")
        self.transport = transport


class ProfileError(ConfigurationError):
    """A connection profile is missing a required field or has a bad port."""


class SettingsError(ConfigurationError):
    """A settings file could not be interpreted."""


class EngineStartError(VeilBoxError, RuntimeError):
    """Start failed; no engine process was left running."""


class DataDirError(EngineStartError):
    pass


class ConfigWriteError(EngineStartError):
    pass


class EngineNotFoundError(EngineStartError):
    pass


class EngineLaunchError(EngineStartError):
    pass


class CacheUnavailableError(EngineStartError):
    """Preferred cache file stayed locked and no fallback could be allocated."""
