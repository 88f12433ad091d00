from __future__ import annotations


class CapaError(Exception):
    """Base class for errors raised by the capa state layer."""


class ResolutionError(CapaError):
    """The current user's home directory could not be determined."""


class DirectoryCreationError(CapaError):
    """The state directory could not be created."""


class SettingsParseError(CapaError, ValueError):
    """The settings file exists but does not hold a valid settings document."""


class SettingsWriteError(CapaError):
    """The settings file could not be written."""
