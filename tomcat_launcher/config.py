"""Settings file management."""
import logging
import os
import yaml
from typing import Dict, Optional
from pathlib import Path

from tomcat_launcher.models import Configuration

logger = logging.getLogger(__name__)

WORKSPACE_SETTINGS = ".tomcat-launcher.yaml"
USER_SETTINGS = Path("~/.config/tomcat-launcher/settings.yaml")

SCOPES = ("workspace", "user")


class ConfigManager:
    """Manages the persisted launcher settings.

    Settings live in two YAML files: one in the workspace and one in the
    user's config directory. Workspace values win over user values.
    """

    def __init__(self, workspace: Optional[str] = None, user_settings_path: Optional[str] = None):
        """Initialize config manager.

        Args:
            workspace: Workspace folder (defaults to LAUNCHER_WORKSPACE or the working directory)
            user_settings_path: Override for the user-level settings file
        """
        workspace = workspace or os.environ.get("LAUNCHER_WORKSPACE") or os.getcwd()
        self.workspace = Path(workspace)
        self.paths: Dict[str, Path] = {
            "workspace": self.workspace / WORKSPACE_SETTINGS,
            "user": Path(user_settings_path).expanduser() if user_settings_path else USER_SETTINGS.expanduser(),
        }

    def _read(self, scope: str) -> Dict[str, str]:
        path = self.paths[scope]
        if not path.exists():
            return {}

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.error("Error loading %s: %s", path, e)
            return {}

        if not isinstance(data, dict):
            if data:
                logger.warning("Ignoring malformed settings file %s", path)
            return {}

        return {str(k): "" if v is None else str(v) for k, v in data.items()}

    def _write(self, scope: str, data: Dict[str, str]):
        path = self.paths[scope]
        # Ensure parent directory exists
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            yaml.dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)

    def get(self, key: str, default: str = "") -> str:
        """Get a setting value.

        Args:
            key: Setting name (e.g. TOMCAT_HOME)
            default: Value returned when no scope defines the key

        Returns:
            The workspace value, else the user value, else ``default``
        """
        _check_key(key)
        for scope in SCOPES:
            values = self._read(scope)
            if key in values:
                return values[key]
        return default

    def set(self, key: str, value: str, scope: str = "workspace"):
        """Persist a setting value.

        Args:
            key: Setting name
            value: New value
            scope: 'workspace' or 'user'
        """
        _check_key(key)
        if scope not in SCOPES:
            raise ValueError(f"Unknown settings scope: {scope}")

        data = self._read(scope)
        data[key] = value
        self._write(scope, data)
        logger.info("Setting %s updated in %s settings", key, scope)

    def load_configuration(self) -> Configuration:
        """Build a configuration record from the persisted settings."""
        return self.load_into(Configuration())

    def load_into(self, config: Configuration) -> Configuration:
        """Refresh a shared configuration record in place.

        Fields absent from every settings file keep their current value.
        """
        for key in Configuration.keys():
            config.set_value(key, self.get(key, config.get_value(key)))
        return config


def _check_key(key: str):
    if key not in Configuration.keys():
        raise ValueError(f"Unknown configuration key: {key}")
