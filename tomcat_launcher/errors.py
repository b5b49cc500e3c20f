"""Exceptions raised inside launcher components.

They never escape a public operation: each component catches them at its
boundary, reports them and returns a failure value.
"""
from tomcat_launcher.models import ErrorKind


class LauncherError(Exception):
    """Base class for recoverable launcher failures."""
    kind = ErrorKind.FILESYSTEM_ERROR


class ConfigurationMissing(LauncherError):
    """A required configuration field is empty."""
    kind = ErrorKind.CONFIGURATION_MISSING

    def __init__(self, keys):
        self.keys = list(keys)
        super().__init__(f"Missing configuration: {', '.join(self.keys)}")


class ArtifactNotFound(LauncherError):
    """The exploded WAR could not be located."""
    kind = ErrorKind.ARTIFACT_NOT_FOUND


class ProcessSpawnFailure(LauncherError):
    """An external program could not be started."""
    kind = ErrorKind.PROCESS_SPAWN_FAILURE


class LauncherFilesystemError(LauncherError):
    """Copy, mkdir or write failure."""
    kind = ErrorKind.FILESYSTEM_ERROR
