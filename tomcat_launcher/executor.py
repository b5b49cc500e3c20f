"""External command execution with streamed output and timeout."""
import asyncio
import codecs
import logging
from typing import AsyncIterator, Dict, Optional, Sequence

from tomcat_launcher.models import CommandResult, ErrorKind
from tomcat_launcher.output import OutputSink
from tomcat_launcher.utils import kill_process_tree

logger = logging.getLogger(__name__)


async def iter_output(stream: asyncio.StreamReader, chunk_size: int = 4096) -> AsyncIterator[str]:
    """Yield decoded output chunks until the stream reaches EOF."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        data = await stream.read(chunk_size)
        if not data:
            break
        text = decoder.decode(data)
        if text:
            yield text
    tail = decoder.decode(b"", final=True)
    if tail:
        yield tail


async def pump_output(process: asyncio.subprocess.Process, sink: OutputSink) -> int:
    """Forward combined process output to the sink and wait for exit."""
    if process.stdout is not None:
        async for chunk in iter_output(process.stdout):
            sink.append(chunk)
    return await process.wait()


class CommandExecutor:
    """Runs external programs, streaming their output to the sink."""

    def __init__(self, sink: OutputSink):
        self.sink = sink

    async def execute(
        self,
        executable: str,
        args: Sequence[str] = (),
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        timeout_sec: Optional[float] = None,
    ) -> CommandResult:
        """Execute a command.

        stderr is merged into stdout so the sink sees output in the order the
        OS delivered it.

        Args:
            executable: Program to run
            args: Program arguments
            cwd: Working directory
            env: Full environment for the child (None inherits ours)
            timeout_sec: Kill the process tree after this many seconds

        Returns:
            CommandResult, never raises
        """
        command_line = " ".join([executable, *args])

        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *args,
                cwd=cwd,
                env=env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except (OSError, ValueError) as e:
            message = f"Failed to execute {command_line}: {e}"
            self.sink.append_line(f"ERROR: {message}")
            return CommandResult(success=False, error=ErrorKind.PROCESS_SPAWN_FAILURE, message=message)

        logger.debug("Started %s with PID %s", command_line, process.pid)

        try:
            code = await asyncio.wait_for(pump_output(process, self.sink), timeout=timeout_sec)
        except asyncio.TimeoutError:
            kill_process_tree(process.pid)
            await process.wait()
            message = f"{command_line} timed out after {timeout_sec:g}s"
            self.sink.append_line(f"ERROR: {message}")
            return CommandResult(
                success=False,
                timed_out=True,
                error=ErrorKind.PROCESS_TIMEOUT,
                message=message,
                pid=process.pid,
            )

        if code == 0:
            return CommandResult(success=True, exit_code=0, pid=process.pid)

        return CommandResult(
            success=False,
            exit_code=code,
            error=ErrorKind.NON_ZERO_EXIT,
            message=f"{command_line} failed with exit code {code}",
            pid=process.pid,
        )
