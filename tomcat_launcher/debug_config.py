"""Debugger attach configuration for the editor."""
import json
import logging
from pathlib import Path
from typing import Optional

from tomcat_launcher.models import Configuration

logger = logging.getLogger(__name__)

LAUNCH_FILE = Path(".vscode") / "launch.json"


def build_debug_configuration(config: Configuration) -> dict:
    app_name = config.app_context or "Spring Application"
    return {
        "version": "0.2.0",
        "configurations": [
            {
                "name": f"Debug {app_name}",
                "type": "java",
                "request": "attach",
                "hostName": "localhost",
                "port": config.debug_port(),
                "timeout": 10000,
            }
        ],
    }


def write_debug_configuration(workspace: Path, config: Configuration) -> Optional[Path]:
    """Write .vscode/launch.json unless the workspace already has one.

    Returns:
        Path written, or None if the file already existed
    """
    launch_path = Path(workspace) / LAUNCH_FILE
    if launch_path.exists():
        return None

    launch_path.parent.mkdir(parents=True, exist_ok=True)
    with open(launch_path, 'w', encoding='utf-8') as f:
        json.dump(build_debug_configuration(config), f, indent=2)
    logger.info("Debug configuration written to %s", launch_path)
    return launch_path
