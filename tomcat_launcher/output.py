"""Output sink and user notifications."""
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, TextIO

from tomcat_launcher.models import Notification

logger = logging.getLogger(__name__)


class OutputSink:
    """Append-only output stream backed by a log file.

    Child process output is appended verbatim, launcher messages are
    appended as timestamped lines.
    """

    def __init__(self, log_dir: str = "logs", name: str = "tomcat-launcher", echo: Optional[TextIO] = None):
        """Initialize output sink.

        Args:
            log_dir: Directory for the log file (relative to the working directory)
            name: Log file name without extension
            echo: Optional stream that receives a copy of everything written
        """
        self.log_dir = Path(log_dir)
        if not self.log_dir.is_absolute():
            self.log_dir = Path.cwd() / self.log_dir
        self.name = name
        self.echo = echo
        self.visible = False

    @property
    def log_path(self) -> Path:
        return self.log_dir / f"{self.name}.log"

    def append(self, text: str):
        """Append raw text (child process output) to the log."""
        if not text:
            return
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, 'a', encoding='utf-8') as f:
                f.write(text)
        except OSError as e:
            logger.error("Error writing to log %s: %s", self.log_path, e)
        if self.echo is not None:
            self.echo.write(text)
            self.echo.flush()

    def append_line(self, message: str):
        """Append a timestamped launcher message."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        self.append(f"[{timestamp}] {message}\n")

    def reveal(self):
        """Bring the output to the user's attention."""
        self.visible = True
        logger.debug("Output revealed: %s", self.log_path)

    def read_log(self, lines: int = 2000) -> str:
        """Read the last lines of the log.

        Args:
            lines: Number of lines to read from end

        Returns:
            Log content
        """
        if not self.log_path.exists():
            return f"No log file found at {self.log_path}"

        try:
            with open(self.log_path, 'r', encoding='utf-8', errors='replace') as f:
                all_lines = f.readlines()
                return ''.join(all_lines[-lines:])
        except OSError as e:
            return f"Error reading log: {e}"


class Notifier:
    """Records one summary notification per operation outcome."""

    def __init__(self, max_history: int = 200):
        self.max_history = max_history
        self.history: List[Notification] = []

    def _push(self, level: str, message: str) -> Notification:
        notification = Notification(level=level, message=message)
        self.history.append(notification)
        del self.history[:-self.max_history]
        logger.log(logging.getLevelName(level.upper()), message)
        return notification

    def info(self, message: str) -> Notification:
        return self._push("info", message)

    def warning(self, message: str) -> Notification:
        return self._push("warning", message)

    def error(self, message: str) -> Notification:
        return self._push("error", message)

    def last(self) -> Optional[Notification]:
        return self.history[-1] if self.history else None
