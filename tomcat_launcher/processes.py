"""Tomcat process discovery and forced termination."""
import asyncio
import logging
from typing import List

import psutil

from tomcat_launcher.models import DiscoveredProcess
from tomcat_launcher.output import OutputSink
from tomcat_launcher.platforms import PlatformOps, dedupe_processes

logger = logging.getLogger(__name__)


class ProcessDiscovery:
    """Finds running Tomcat JVMs, whoever started them."""

    def __init__(self, ops: PlatformOps, sink: OutputSink):
        self.ops = ops
        self.sink = sink

    async def find_server_processes(self, port_hint: int) -> List[DiscoveredProcess]:
        """Find processes listening on the debug port or looking like Tomcat.

        Both lookups run concurrently. A lookup that fails counts as finding
        nothing. The union is de-duplicated by PID, first occurrence wins.

        Args:
            port_hint: Port the server is expected to listen on (JPDA port)

        Returns:
            List of DiscoveredProcess with unique PIDs
        """
        self.sink.append_line("Searching for Tomcat processes...")

        results = await asyncio.gather(
            self.ops.list_processes_by_port(port_hint),
            self.ops.list_processes_by_pattern(),
            return_exceptions=True,
        )

        processes: List[DiscoveredProcess] = []
        for result in results:
            if isinstance(result, BaseException):
                logger.warning("Process lookup failed: %s", result)
                continue
            processes.extend(result)

        return dedupe_processes(processes)


class ProcessTerminator:
    """Force kills a process by PID. Best effort, never raises."""

    def __init__(self, ops: PlatformOps, sink: OutputSink):
        self.ops = ops
        self.sink = sink

    async def kill(self, process: DiscoveredProcess) -> bool:
        """Kill a discovered process with the strongest signal available.

        Returns:
            True if the process was killed or had already exited
        """
        self.sink.append_line(f"Killing process {process.pid} ({process.command})")

        try:
            await asyncio.to_thread(self.ops.kill_process, process.pid)
        except psutil.NoSuchProcess:
            self.sink.append_line(f"Process {process.pid} already exited")
            return True
        except psutil.Error as e:
            self.sink.append_line(f"WARN: Failed to terminate process {process.pid}: {e}")
            return False
        except ValueError as e:
            self.sink.append_line(f"ERROR: Error killing process {process.pid}: {e}")
            return False

        self.sink.append_line(f"Process {process.pid} terminated")
        return True
