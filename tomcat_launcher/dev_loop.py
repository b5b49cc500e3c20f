"""Build, deploy and debug loop orchestration."""
import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional

from tomcat_launcher.build_runner import BuildRunner
from tomcat_launcher.config import ConfigManager
from tomcat_launcher.debug_config import write_debug_configuration
from tomcat_launcher.executor import CommandExecutor
from tomcat_launcher.models import Configuration
from tomcat_launcher.output import Notifier, OutputSink
from tomcat_launcher.platforms import PlatformOps, get_platform_ops
from tomcat_launcher.processes import ProcessDiscovery, ProcessTerminator
from tomcat_launcher.resources import ResourceSynchronizer
from tomcat_launcher.server_manager import ServerLifecycleManager

logger = logging.getLogger(__name__)


class DevLoop:
    """Wires the launcher components around one shared configuration."""

    def __init__(
        self,
        config_manager: ConfigManager,
        sink: Optional[OutputSink] = None,
        notifier: Optional[Notifier] = None,
        ops: Optional[PlatformOps] = None,
        settle_delay: Optional[float] = None,
    ):
        self.config_manager = config_manager
        self.config: Configuration = config_manager.load_configuration()
        self.sink = sink or OutputSink()
        self.notifier = notifier or Notifier()
        self.ops = ops or get_platform_ops()

        executor = CommandExecutor(self.sink)
        self.builds = BuildRunner(self.config, executor, self.ops, self.sink, self.notifier)

        server_options = {} if settle_delay is None else {"settle_delay": settle_delay}
        self.server = ServerLifecycleManager(
            self.config,
            self.ops,
            ProcessDiscovery(self.ops, self.sink),
            ProcessTerminator(self.ops, self.sink),
            self.sink,
            self.notifier,
            **server_options,
        )
        self.resources = ResourceSynchronizer(self.config, self.sink, self.notifier)
        # Serializes operations and configuration updates.
        self._lock = asyncio.Lock()

    @property
    def workspace(self) -> Path:
        return self.config_manager.workspace

    def reload_configuration(self) -> Configuration:
        """Re-read persisted settings into the shared record.

        Must not be called while an operation is in flight; use
        ``update_setting`` from concurrent callers.
        """
        self.config_manager.load_into(self.config)
        logger.info("Configuration reloaded")
        return self.config

    async def update_setting(self, key: str, value: str, scope: str = "workspace") -> Configuration:
        """Persist a setting and refresh the shared record.

        Waits for any running operation, so a build or start never sees the
        configuration change half way through.

        Raises:
            ValueError: unknown key or scope
        """
        async with self._lock:
            self.config_manager.set(key, value, scope)
            return self.reload_configuration()

    def is_busy(self) -> bool:
        return self._lock.locked()

    def status(self) -> Dict[str, object]:
        return {
            "status": self.server.status.value,
            "running": self.server.is_running(),
            "pid": self.server.pid,
            "app_context": self.config.app_context,
            "debug_port": self.config.debug_port(),
            "busy": self.is_busy(),
        }

    async def _exclusive(self, operation: Callable[[], Awaitable[bool]]) -> bool:
        async with self._lock:
            return await operation()

    async def setup_environment(self) -> bool:
        return await self._exclusive(self.server.setup_environment)

    async def create_context(self) -> bool:
        return await self._exclusive(self.server.create_context)

    async def start_server(self) -> bool:
        return await self._exclusive(self._start_server)

    async def _start_server(self) -> bool:
        success = await self.server.start()
        if success:
            try:
                written = write_debug_configuration(self.workspace, self.config)
            except OSError as e:
                self.sink.append_line(f"WARN: Could not write debug configuration: {e}")
            else:
                if written is not None:
                    self.sink.append_line(f"Debug configuration created: {written}")
        return success

    async def stop_server(self) -> bool:
        return await self._exclusive(self.server.stop)

    async def update_classes(self) -> bool:
        return await self._exclusive(self.builds.update_classes)

    async def update_resources(self) -> bool:
        return await self._exclusive(self.resources.sync)

    async def full_rebuild(self) -> bool:
        return await self._exclusive(self.builds.full_rebuild)

    async def clean(self) -> bool:
        return await self._exclusive(self.builds.clean)

    async def package(self) -> bool:
        return await self._exclusive(self.builds.package)

    async def dispose(self):
        """Kill the managed server. Does not wait for running operations."""
        await self.server.dispose()
