"""Utility functions for OS detection, paths and process trees."""
import os
import platform
from pathlib import Path
from typing import Optional

import psutil


def detect_os() -> str:
    """Detect operating system.

    Returns:
        'windows', 'wsl', 'linux' or the lowercased platform name
    """
    system = platform.system().lower()

    if system == 'windows':
        return 'windows'
    elif system == 'linux':
        # Check if running in WSL
        try:
            with open('/proc/version', 'r') as f:
                if 'microsoft' in f.read().lower():
                    return 'wsl'
        except OSError:
            pass
        return 'linux'
    else:
        return system


def resolve_workspace_path(path: str) -> str:
    """Expand user and environment variables in a configured path.

    Args:
        path: Configured path

    Returns:
        Absolute path if it exists, otherwise the expanded string
    """
    path = os.path.expanduser(path)
    path = os.path.expandvars(path)

    try:
        p = Path(path)
        if p.exists():
            return str(p.resolve())
    except OSError:
        pass

    return path


def path_exists(path: Optional[str]) -> bool:
    return bool(path) and Path(resolve_workspace_path(path)).exists()


def is_process_alive(pid: int) -> bool:
    """Return True if a process with this PID exists and is not a zombie."""
    try:
        proc = psutil.Process(pid)
        return proc.status() != psutil.STATUS_ZOMBIE
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return False


def kill_process_tree(pid: int, timeout: float = 5) -> None:
    """Force kill a process and all of its children.

    Shell wrappers (mvn, catalina.sh) spawn the actual JVM as a child, so
    killing only the direct child would leave the JVM running. The process
    itself is not waited for: it is our own child and its owner reaps it.
    """
    try:
        parent = psutil.Process(pid)
        children = parent.children(recursive=True)
    except psutil.NoSuchProcess:
        return

    for proc in children + [parent]:
        try:
            proc.kill()
        except psutil.NoSuchProcess:
            pass

    if children:
        psutil.wait_procs(children, timeout=timeout)
