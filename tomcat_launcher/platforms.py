"""Platform specific process capabilities.

All Windows/POSIX differences live here. The rest of the launcher talks to
a ``PlatformOps`` instance chosen once by ``get_platform_ops()``.

Process lookups go through psutil. The selection rules are plain functions
over connection and process records so they can be tested without a real
Tomcat.
"""
import asyncio
import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

import psutil

from tomcat_launcher.models import DiscoveredProcess
from tomcat_launcher.utils import detect_os

logger = logging.getLogger(__name__)

# Case sensitive tokens found in a Tomcat JVM command line.
SERVER_PATTERNS = ("catalina", "tomcat", "Bootstrap")

SERVER_PROCESS_LABEL = "Java Tomcat process"


def port_label(port: int) -> str:
    """Describe a process found through its listening port.

    Args:
        port: Port the process listens on

    Returns:
        Label used in kill log lines
    """
    return f"Process using port {port}"


def dedupe_processes(processes: Sequence[DiscoveredProcess]) -> List[DiscoveredProcess]:
    """Drop repeated PIDs, keeping the first occurrence."""
    seen = set()
    unique = []
    for proc in processes:
        if proc.pid in seen:
            continue
        seen.add(proc.pid)
        unique.append(proc)
    return unique


def iter_tcp_connections() -> Iterator[Tuple[Optional[int], object]]:
    """Yield ``(pid, connection)`` for every TCP socket visible to us.

    The system-wide table needs privileges on some platforms (macOS). When
    it is denied, sockets are collected process by process instead.
    """
    try:
        connections = psutil.net_connections(kind='tcp')
    except psutil.AccessDenied:
        connections = None

    if connections is not None:
        for conn in connections:
            yield conn.pid, conn
        return

    for proc in psutil.process_iter(['pid']):
        try:
            for conn in proc.net_connections(kind='tcp'):
                yield proc.pid, conn
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue


def select_listeners(connections: Iterable[Tuple[Optional[int], object]], port: int) -> List[DiscoveredProcess]:
    """Keep the owners of sockets listening on ``port``.

    Client connections to the port (an attached debugger) and sockets
    without an owner (TIME_WAIT, PID 0) are ignored.
    """
    processes = []
    for pid, conn in connections:
        if not pid:
            continue
        if conn.status != psutil.CONN_LISTEN:
            continue
        if not conn.laddr or int(getattr(conn.laddr, 'port', -1)) != int(port):
            continue
        processes.append(DiscoveredProcess(pid=str(pid), command=port_label(port)))
    return dedupe_processes(processes)


def matches_server_patterns(cmdline: Sequence[str], patterns: Sequence[str] = SERVER_PATTERNS) -> bool:
    """True if any token appears in the joined command line (case sensitive)."""
    line = " ".join(cmdline)
    return any(token in line for token in patterns)


class PlatformOps:
    """Process capabilities needed by the launcher."""

    name = "generic"
    build_tool = "mvn"
    startup_script = "catalina.sh"

    def is_java_process(self, name: str, cmdline: Sequence[str]) -> bool:
        raise NotImplementedError

    def server_command(self, script: Path) -> List[str]:
        """argv that runs the startup script in JPDA debug mode in the foreground."""
        raise NotImplementedError

    async def list_processes_by_port(self, port: int) -> List[DiscoveredProcess]:
        """Processes with a TCP socket listening on ``port``."""
        return await asyncio.to_thread(self._scan_port, port)

    def _scan_port(self, port: int) -> List[DiscoveredProcess]:
        return select_listeners(iter_tcp_connections(), port)

    async def list_processes_by_pattern(self) -> List[DiscoveredProcess]:
        """Java processes whose command line names Tomcat."""
        return await asyncio.to_thread(self._scan_patterns)

    def _scan_patterns(self) -> List[DiscoveredProcess]:
        own_pid = os.getpid()
        processes = []
        for proc in psutil.process_iter(['pid', 'name', 'cmdline']):
            info = proc.info
            cmdline = info.get('cmdline') or []
            if info['pid'] == own_pid or not cmdline:
                continue
            if self.is_java_process(info.get('name') or "", cmdline) and matches_server_patterns(cmdline):
                processes.append(DiscoveredProcess(pid=str(info['pid']), command=SERVER_PROCESS_LABEL))
        return dedupe_processes(processes)

    def kill_process(self, pid: str) -> None:
        """Force kill a process: SIGKILL on POSIX, TerminateProcess on Windows.

        Raises:
            ValueError: pid is not numeric
            psutil.Error: the process is gone or may not be signalled
        """
        psutil.Process(int(pid)).kill()

    def resolve_script_name(self, tomcat_home: str) -> Path:
        return Path(tomcat_home) / "bin" / self.startup_script

    def resolve_build_tool(self, maven_home: str) -> Optional[Path]:
        """Maven binary under an explicit installation, if configured."""
        if not maven_home:
            return None
        return Path(maven_home) / "bin" / self.build_tool


class PosixOps(PlatformOps):
    name = "posix"

    def is_java_process(self, name: str, cmdline: Sequence[str]) -> bool:
        return name == "java" or "java" in " ".join(cmdline)

    def server_command(self, script: Path) -> List[str]:
        return ["bash", str(script), "jpda", "run"]


class WindowsOps(PlatformOps):
    name = "windows"
    build_tool = "mvn.cmd"
    startup_script = "catalina.bat"

    def is_java_process(self, name: str, cmdline: Sequence[str]) -> bool:
        return name.lower() == "java.exe"

    def server_command(self, script: Path) -> List[str]:
        return ["cmd", "/c", str(script), "jpda", "run"]


def get_platform_ops(os_name: Optional[str] = None) -> PlatformOps:
    """Select the platform implementation for the current (or given) OS."""
    os_name = os_name or detect_os()
    logger.debug("Using %s process capabilities", os_name)
    if os_name == "windows":
        return WindowsOps()
    return PosixOps()
