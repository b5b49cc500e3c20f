"""Static resource push into the exploded WAR."""
import asyncio
import logging
import shutil
from pathlib import Path
from typing import Iterable

from tomcat_launcher.artifacts import MARKER_DIR, resolve_exploded_artifact
from tomcat_launcher.errors import ArtifactNotFound, ConfigurationMissing, LauncherError, LauncherFilesystemError
from tomcat_launcher.models import Configuration
from tomcat_launcher.output import Notifier, OutputSink

logger = logging.getLogger(__name__)

# Compiled classes, jars and the deployment descriptor only come from a full build.
WEB_INF_EXCLUDED_DIRS = ("lib", "classes")
WEB_INF_EXCLUDED_FILES = ("web.xml",)


def webapp_source_dir(project_path: str, app_context: str) -> Path:
    return Path(project_path) / app_context / "src" / "main" / "webapp"


def copy_directory_contents(
    source_dir: Path,
    target_dir: Path,
    exclude_dirs: Iterable[str] = (),
    exclude_files: Iterable[str] = (),
) -> int:
    """Recursively copy a directory tree, overwriting existing files.

    Exclusions are matched by name at every depth.

    Returns:
        Number of files copied
    """
    exclude_dirs = set(exclude_dirs)
    exclude_files = set(exclude_files)

    if not source_dir.is_dir():
        raise LauncherFilesystemError(f"Source directory not found: {source_dir}")

    target_dir.mkdir(parents=True, exist_ok=True)

    copied = 0
    for item in sorted(source_dir.iterdir(), key=lambda p: p.name):
        target_path = target_dir / item.name
        if item.is_dir():
            if item.name in exclude_dirs:
                continue
            copied += copy_directory_contents(item, target_path, exclude_dirs, exclude_files)
        else:
            if item.name in exclude_files:
                continue
            shutil.copyfile(item, target_path)
            copied += 1
    return copied


class ResourceSynchronizer:
    """Copies webapp resources into the deployed exploded WAR."""

    def __init__(self, config: Configuration, sink: OutputSink, notifier: Notifier):
        self.config = config
        self.sink = sink
        self.notifier = notifier

    async def sync(self) -> bool:
        """Push src/main/webapp into the exploded WAR.

        Partial copies are left in place when a copy fails.
        """
        try:
            await self._sync()
        except LauncherError as e:
            self.sink.append_line(f"ERROR: {e}")
            self.notifier.error(f"Failed to copy resources: {e}")
            return False

        self.notifier.info("Resources updated successfully")
        return True

    async def _sync(self):
        missing = self.config.missing("PROJECT_PATH", "APP_CONTEXT")
        if missing:
            raise ConfigurationMissing(missing)

        project_path, app_context = self.config.project_path, self.config.app_context
        self.sink.append_line("Copying webapp resources...")

        doc_base = resolve_exploded_artifact(project_path, app_context)
        if doc_base is None:
            raise ArtifactNotFound('Could not locate the exploded WAR. Run "Full Rebuild" first.')
        self.sink.append_line(f"Docbase found: {doc_base}")

        source = webapp_source_dir(project_path, app_context)
        logger.info("Synchronizing %s into %s", source, doc_base)
        try:
            count = await asyncio.to_thread(copy_directory_contents, source, doc_base, [MARKER_DIR])
            self.sink.append_line(f"Root resources copied ({count} files)")

            web_inf = source / MARKER_DIR
            if web_inf.is_dir():
                count = await asyncio.to_thread(
                    copy_directory_contents,
                    web_inf,
                    doc_base / MARKER_DIR,
                    WEB_INF_EXCLUDED_DIRS,
                    WEB_INF_EXCLUDED_FILES,
                )
                self.sink.append_line(f"WEB-INF resources copied ({count} files)")
        except OSError as e:
            raise LauncherFilesystemError(str(e)) from e
