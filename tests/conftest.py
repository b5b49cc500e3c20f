"""Shared fixtures for launcher tests."""
import os
import sys
from pathlib import Path
from typing import List

import pytest

from tomcat_launcher.config import ConfigManager
from tomcat_launcher.dev_loop import DevLoop
from tomcat_launcher.models import CommandResult, Configuration, DiscoveredProcess, ErrorKind
from tomcat_launcher.output import Notifier, OutputSink
from tomcat_launcher.platforms import PosixOps, WindowsOps

posix_only = pytest.mark.skipif(os.name == "nt", reason="uses bash scripts")

PYTHON = sys.executable


@pytest.fixture
def sink(tmp_path):
    return OutputSink(log_dir=str(tmp_path / "logs"))


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def project(tmp_path):
    """Project root with an 'app' web module."""
    root = tmp_path / "project"
    (root / "app" / "src" / "main" / "webapp").mkdir(parents=True)
    return root


@pytest.fixture
def tomcat_home(tmp_path):
    home = tmp_path / "tomcat"
    (home / "bin").mkdir(parents=True)
    return home


@pytest.fixture
def config(project, tomcat_home):
    return Configuration(
        PROJECT_PATH=str(project),
        TOMCAT_HOME=str(tomcat_home),
        APP_CONTEXT="app",
        JPDA_ADDRESS="8000",
    )


def make_exploded(project: Path, name: str = "app") -> Path:
    """Create target/<name>/WEB-INF like war:exploded does."""
    exploded = project / "app" / "target" / name
    (exploded / "WEB-INF").mkdir(parents=True)
    return exploded


def deny_listing(monkeypatch, dir_name: str = "target"):
    """Make listing any directory called dir_name fail with EACCES."""
    real_iterdir = Path.iterdir

    def iterdir(self):
        if self.name == dir_name:
            raise PermissionError(13, "Permission denied", str(self))
        return real_iterdir(self)

    monkeypatch.setattr(Path, "iterdir", iterdir)


def host_ops():
    return WindowsOps() if os.name == "nt" else PosixOps()


class FakeExecutor:
    """Records executions and replays canned results."""

    def __init__(self, results: List[CommandResult] = None):
        self.results = list(results or [])
        self.calls = []

    async def execute(self, executable, args=(), cwd=None, env=None, timeout_sec=None):
        self.calls.append({
            "executable": executable,
            "args": list(args),
            "cwd": cwd,
            "env": env,
            "timeout_sec": timeout_sec,
        })
        if self.results:
            return self.results.pop(0)
        return CommandResult(success=True, exit_code=0)


def failed(exit_code: int = 1) -> CommandResult:
    return CommandResult(success=False, exit_code=exit_code, error=ErrorKind.NON_ZERO_EXIT)


class FakeDiscovery:
    """Returns one canned scan result per call."""

    def __init__(self, scans: List[List[DiscoveredProcess]]):
        self.scans = list(scans)
        self.calls = []

    async def find_server_processes(self, port_hint):
        self.calls.append(port_hint)
        return self.scans.pop(0) if self.scans else []


class FakeTerminator:
    def __init__(self):
        self.killed = []

    async def kill(self, process):
        self.killed.append(process.pid)
        return True


@pytest.fixture
def dev_loop(tmp_path, project, tomcat_home, sink, notifier):
    """A DevLoop whose settings point at the temporary project and Tomcat."""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    manager = ConfigManager(workspace=str(workspace), user_settings_path=str(tmp_path / "user.yaml"))
    manager.set("PROJECT_PATH", str(project))
    manager.set("TOMCAT_HOME", str(tomcat_home))
    manager.set("APP_CONTEXT", "app")

    return DevLoop(manager, sink=sink, notifier=notifier, ops=host_ops(), settle_delay=0.5)
