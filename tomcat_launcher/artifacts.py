"""Exploded WAR lookup."""
from pathlib import Path
from typing import Optional

from tomcat_launcher.errors import LauncherFilesystemError

MARKER_DIR = "WEB-INF"


def target_dir(project_path: str, app_context: str) -> Path:
    return Path(project_path) / app_context / "target"


def resolve_exploded_artifact(project_path: str, app_context: str) -> Optional[Path]:
    """Locate the exploded web application built for a module.

    Maven names the exploded directory after the final name, which may carry
    a version or classifier suffix. The exact ``target/<module>`` directory is
    preferred, otherwise the first ``target/<module>*`` directory holding a
    WEB-INF folder is used.

    Args:
        project_path: Project root
        app_context: Web module name

    Returns:
        Path of the exploded WAR, or None if no build output was found

    Raises:
        LauncherFilesystemError: target directory cannot be listed
    """
    target = target_dir(project_path, app_context)
    if not target.is_dir():
        return None

    exact = target / app_context
    if exact.is_dir():
        return exact

    try:
        candidates = sorted(target.iterdir(), key=lambda p: p.name)
    except OSError as e:
        raise LauncherFilesystemError(f"Cannot read {target}: {e}") from e

    for candidate in candidates:
        if candidate.is_dir() and candidate.name.startswith(app_context) and (candidate / MARKER_DIR).is_dir():
            return candidate

    return None
