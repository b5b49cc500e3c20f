"""Data models for the launcher configuration and runtime results."""
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


DEFAULT_JPDA_ADDRESS = "8000"


class ServerStatus(str, Enum):
    """Tomcat server status."""
    STOPPED = "Stopped"
    STARTING = "Starting"
    RUNNING = "Running"
    ERROR = "Error"


class BuildVerb(str, Enum):
    """Maven verbs exposed by the build runner."""
    COMPILE = "compile"
    CLEAN = "clean"
    PACKAGE = "package"


class ErrorKind(str, Enum):
    """Failure categories reported by the launcher components."""
    CONFIGURATION_MISSING = "ConfigurationMissing"
    PATH_NOT_FOUND = "PathNotFound"
    ARTIFACT_NOT_FOUND = "ArtifactNotFound"
    PROCESS_SPAWN_FAILURE = "ProcessSpawnFailure"
    PROCESS_TIMEOUT = "ProcessTimeout"
    NON_ZERO_EXIT = "NonZeroExit"
    FILESYSTEM_ERROR = "FilesystemError"


class Configuration(BaseModel):
    """Project settings shared by every component.

    Each field is also known by its environment variable name (the alias),
    which is how it is persisted and how it is handed to child processes.
    """
    model_config = ConfigDict(populate_by_name=True)

    project_path: str = Field(default="", alias="PROJECT_PATH", description="Project root (Maven reactor)")
    java_home: str = Field(default="", alias="JAVA_HOME", description="Java installation")
    maven_home: str = Field(default="", alias="MAVEN_HOME", description="Maven installation")
    tomcat_home: str = Field(default="", alias="TOMCAT_HOME", description="Tomcat installation")
    spring_profiles_active: str = Field(default="", alias="SPRING_PROFILES_ACTIVE", description="Active Spring profile")
    jpda_address: str = Field(default="", alias="JPDA_ADDRESS", description="Debug address, host:port or port")
    app_context: str = Field(default="", alias="APP_CONTEXT", description="Web module name / context")

    @classmethod
    def keys(cls) -> List[str]:
        """Environment-style names of all fields, in declaration order."""
        return [field.alias for field in cls.model_fields.values()]

    def get_value(self, key: str) -> str:
        """Get a field by environment name (e.g. TOMCAT_HOME) or field name.

        Raises:
            ValueError: key is not a configuration field
        """
        return getattr(self, _field_name(key))

    def set_value(self, key: str, value: str) -> None:
        """Set a field by environment name or field name.

        Raises:
            ValueError: key is not a configuration field
        """
        setattr(self, _field_name(key), value)

    def as_environment(self) -> Dict[str, str]:
        """Return the non-empty fields keyed by their environment names."""
        return {key: value for key, value in self.model_dump(by_alias=True).items() if value}

    def missing(self, *keys: str) -> List[str]:
        """Return the given keys whose values are empty."""
        return [key for key in keys if not self.get_value(key).strip()]

    def debug_address(self) -> str:
        """JPDA address handed to Tomcat, ``8000`` when unset."""
        return self.jpda_address.strip() or DEFAULT_JPDA_ADDRESS

    def debug_port(self) -> int:
        """Port part of the debug address (``host:port`` or bare port)."""
        port = self.debug_address().rsplit(":", 1)[-1]
        try:
            return int(port)
        except ValueError:
            return int(DEFAULT_JPDA_ADDRESS)


def _field_name(key: str) -> str:
    for name, field in Configuration.model_fields.items():
        if key in (name, field.alias):
            return name
    raise ValueError(f"Unknown configuration key: {key}")


class DiscoveredProcess(BaseModel):
    """An OS process that looks like a running Tomcat."""
    pid: str = Field(..., description="Process ID as reported by the OS tool")
    command: str = Field(default="", description="Human readable label")


class CommandResult(BaseModel):
    """Outcome of one external command execution."""
    success: bool
    exit_code: Optional[int] = None
    timed_out: bool = False
    error: Optional[ErrorKind] = None
    message: Optional[str] = None
    pid: Optional[int] = None


class Notification(BaseModel):
    """Summary message surfaced to the user for one operation."""
    level: str
    message: str
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
