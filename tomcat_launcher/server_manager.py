"""Tomcat server lifecycle management."""
import asyncio
import logging
import os
from pathlib import Path
from typing import Optional
from xml.sax.saxutils import quoteattr

from tomcat_launcher.artifacts import resolve_exploded_artifact, target_dir
from tomcat_launcher.errors import (
    ArtifactNotFound,
    ConfigurationMissing,
    LauncherError,
    LauncherFilesystemError,
    ProcessSpawnFailure,
)
from tomcat_launcher.executor import pump_output
from tomcat_launcher.models import Configuration, ServerStatus
from tomcat_launcher.output import Notifier, OutputSink
from tomcat_launcher.platforms import PlatformOps
from tomcat_launcher.processes import ProcessDiscovery, ProcessTerminator
from tomcat_launcher.utils import kill_process_tree, path_exists

logger = logging.getLogger(__name__)

SETTLE_DELAY_SEC = 3.0
VERIFY_DELAY_SEC = 0.5

REBUILD_HINT = 'Run "Full Rebuild" first.'


def context_file_path(tomcat_home: str, app_context: str) -> Path:
    """Tomcat per-host context descriptor for the application."""
    name = app_context.replace("/", "")
    return Path(tomcat_home) / "conf" / "Catalina" / "localhost" / f"{name}.xml"


def render_context(doc_base: Path) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<Context docBase={quoteattr(str(doc_base))} reloadable="true"/>\n'
    )


class ServerLifecycleManager:
    """Owns the Tomcat child process (start, stop, status).

    The process handle is private. Callers use ``status``/``is_running()``,
    which reflect exits that happen without any call from them.
    """

    def __init__(
        self,
        config: Configuration,
        ops: PlatformOps,
        discovery: ProcessDiscovery,
        terminator: ProcessTerminator,
        sink: OutputSink,
        notifier: Notifier,
        settle_delay: float = SETTLE_DELAY_SEC,
        verify_delay: float = VERIFY_DELAY_SEC,
    ):
        self.config = config
        self.ops = ops
        self.discovery = discovery
        self.terminator = terminator
        self.sink = sink
        self.notifier = notifier
        self.settle_delay = settle_delay
        self.verify_delay = verify_delay

        self._status = ServerStatus.STOPPED
        self._process: Optional[asyncio.subprocess.Process] = None
        self._watcher: Optional[asyncio.Task] = None

    @property
    def status(self) -> ServerStatus:
        return self._status

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process is not None else None

    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    def _require(self, *keys: str):
        missing = self.config.missing(*keys)
        if missing:
            raise ConfigurationMissing(missing)

    def _fail(self, error: LauncherError) -> bool:
        self.sink.append_line(f"ERROR: {error}")
        self.notifier.error(str(error))
        return False

    async def setup_environment(self) -> bool:
        """Check the configured installations.

        Returns:
            False only if TOMCAT_HOME is unset or does not exist
        """
        try:
            self._check_environment()
        except LauncherError as e:
            return self._fail(e)

        self.notifier.info("Environment configured")
        return True

    def _check_environment(self):
        self.sink.append_line("Checking development environment...")
        self._require("TOMCAT_HOME")

        for key in ("JAVA_HOME", "MAVEN_HOME"):
            if not self.config.get_value(key):
                self.sink.append_line(f"WARN: {key} is not configured")
            elif not path_exists(self.config.get_value(key)):
                self.sink.append_line(f"WARN: {key} path not found: {self.config.get_value(key)}")

        if not path_exists(self.config.tomcat_home):
            raise LauncherFilesystemError(f"TOMCAT_HOME path not found: {self.config.tomcat_home}")

        self.sink.append_line("Environment configured")

    async def create_context(self) -> bool:
        """Register the exploded WAR with Tomcat."""
        try:
            self._write_context()
        except LauncherError as e:
            return self._fail(e)

        self.notifier.info("Context created")
        return True

    def _write_context(self) -> Path:
        self._require("PROJECT_PATH", "TOMCAT_HOME", "APP_CONTEXT")

        app_context = self.config.app_context
        doc_base = resolve_exploded_artifact(self.config.project_path, app_context)
        if doc_base is None:
            if not target_dir(self.config.project_path, app_context).is_dir():
                raise ArtifactNotFound(f"Target directory not found. {REBUILD_HINT}")
            raise ArtifactNotFound(f"Could not locate the exploded WAR. {REBUILD_HINT}")

        context_file = context_file_path(self.config.tomcat_home, app_context)
        try:
            context_file.parent.mkdir(parents=True, exist_ok=True)
            context_file.write_text(render_context(doc_base), encoding="utf-8")
        except OSError as e:
            raise LauncherFilesystemError(f"Error creating context: {e}") from e

        self.sink.append_line(f"Context created: {context_file}")
        self.sink.append_line(f"   Webapp path: {doc_base}")
        self.sink.append_line(f"   Application context: {app_context}")
        return context_file

    def server_environment(self) -> dict:
        """Environment for the startup script: settings plus the JPDA socket variables."""
        env = dict(os.environ)
        env.update(self.config.as_environment())
        env.update({
            "JPDA_ADDRESS": self.config.debug_address(),
            "JPDA_TRANSPORT": "dt_socket",
            "JPDA_SUSPEND": "n",
        })
        return env

    async def start(self) -> bool:
        """Start Tomcat in JPDA debug mode.

        Returns:
            True if the process is still alive after the settle delay
        """
        try:
            self._require("PROJECT_PATH", "TOMCAT_HOME", "APP_CONTEXT")
        except ConfigurationMissing as e:
            return self._fail(e)

        if self._process is not None or self._status is ServerStatus.STARTING:
            self.sink.append_line("WARN: Tomcat is already running")
            self.notifier.warning("Tomcat is already running")
            return False

        self._status = ServerStatus.STARTING
        try:
            return await self._start()
        except BaseException:
            # A failed or cancelled start must not block the next one.
            if self._status is ServerStatus.STARTING:
                self._status = ServerStatus.ERROR
            raise

    async def _start(self) -> bool:
        try:
            self._check_environment()
            self._write_context()
            process = await self._spawn()
        except LauncherError as e:
            self._status = ServerStatus.ERROR
            return self._fail(e)

        await asyncio.sleep(self.settle_delay)

        if self._process is process and process.returncode is None:
            self._status = ServerStatus.RUNNING
            self.notifier.info("Tomcat started in debug mode")
            return True

        self._status = ServerStatus.ERROR
        self.notifier.error("Failed to start Tomcat")
        return False

    async def _spawn(self) -> asyncio.subprocess.Process:
        script = self.ops.resolve_script_name(self.config.tomcat_home)
        if not script.is_file():
            raise ProcessSpawnFailure(f"Tomcat script not found: {script}")

        command = self.ops.server_command(script)
        self.sink.reveal()
        self.sink.append_line("Starting Tomcat in debug mode...")
        self.sink.append_line(f"Executing: {' '.join(command)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                cwd=self.config.tomcat_home,
                env=self.server_environment(),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise ProcessSpawnFailure(f"Error starting Tomcat: {e}") from e

        self._process = process
        self._watcher = asyncio.create_task(self._watch(process))
        self.sink.append_line(f"Process started with PID: {process.pid}")
        return process

    async def _watch(self, process: asyncio.subprocess.Process):
        """Forward server output and clear the handle when the process exits."""
        try:
            code = await pump_output(process, self.sink)
        except Exception as e:
            logger.exception("Error reading Tomcat output")
            self.sink.append_line(f"ERROR: Error reading Tomcat output: {e}")
            code = await process.wait()

        self.sink.append_line(f"Tomcat stopped with code {code}")
        if self._process is not process:
            return
        self._process = None
        if self._status is ServerStatus.STARTING:
            self._status = ServerStatus.ERROR
        elif self._status is ServerStatus.RUNNING:
            self._status = ServerStatus.STOPPED

    async def stop(self) -> bool:
        """Kill every Tomcat process found on this machine.

        The in-memory handle is not trusted: the server may have been started
        elsewhere, so a fresh OS-wide scan drives the kill.

        Returns:
            True if no Tomcat process is left after the kill pass
        """
        try:
            self._require("PROJECT_PATH", "TOMCAT_HOME")
        except ConfigurationMissing as e:
            return self._fail(e)

        self.sink.reveal()
        self.sink.append_line("Stopping Tomcat...")

        port = self.config.debug_port()
        running = await self.discovery.find_server_processes(port)
        if not running:
            self.sink.append_line("No Tomcat process found")
            self._mark_stopped()
            self.notifier.info("Tomcat stopped")
            return True

        self.sink.append_line(f"Forcing stop of {len(running)} process(es)...")
        for proc in running:
            await self.terminator.kill(proc)

        await asyncio.sleep(self.verify_delay)
        remaining = await self.discovery.find_server_processes(port)
        if remaining:
            self._status = ServerStatus.ERROR
            self.sink.append_line("ERROR: Some Tomcat processes are still running")
            self.notifier.warning("Some Tomcat processes may still be running")
            return False

        self.sink.append_line("All Tomcat processes were stopped")
        self._mark_stopped()
        self.notifier.info("Tomcat stopped")
        return True

    def _mark_stopped(self):
        self._process = None
        self._status = ServerStatus.STOPPED

    async def dispose(self):
        """Kill the managed process tree, if any, and wait for its watcher."""
        process, watcher = self._process, self._watcher
        if process is not None and process.returncode is None:
            kill_process_tree(process.pid)
        if watcher is not None:
            await watcher
        self._watcher = None
        self._mark_stopped()
