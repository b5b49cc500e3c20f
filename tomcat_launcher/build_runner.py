"""Maven build invocation."""
import logging
import os
import shutil
from typing import List, Sequence

from tomcat_launcher.errors import ConfigurationMissing
from tomcat_launcher.executor import CommandExecutor
from tomcat_launcher.models import BuildVerb, CommandResult, Configuration, ErrorKind
from tomcat_launcher.output import Notifier, OutputSink
from tomcat_launcher.platforms import PlatformOps

logger = logging.getLogger(__name__)

BUILD_TIMEOUT_SEC = 5 * 60

REQUIRED_SETTINGS = ("PROJECT_PATH", "APP_CONTEXT")


class BuildRunner:
    """Runs Maven verbs against the configured project."""

    def __init__(
        self,
        config: Configuration,
        executor: CommandExecutor,
        ops: PlatformOps,
        sink: OutputSink,
        notifier: Notifier,
        timeout_sec: float = BUILD_TIMEOUT_SEC,
    ):
        self.config = config
        self.executor = executor
        self.ops = ops
        self.sink = sink
        self.notifier = notifier
        self.timeout_sec = timeout_sec

    def get_maven_executable(self) -> str:
        """Prefer MAVEN_HOME/bin/mvn, then mvn from PATH."""
        explicit = self.ops.resolve_build_tool(self.config.maven_home)
        if explicit is not None and explicit.is_file():
            return str(explicit)
        return shutil.which(self.ops.build_tool) or shutil.which("mvn") or "mvn"

    def build_environment(self) -> dict:
        """Our environment with the non-empty settings overlaid."""
        env = dict(os.environ)
        env.update(self.config.as_environment())
        return env

    def verb_arguments(self, verb: BuildVerb) -> List[str]:
        """Maven arguments for a verb.

        ``package`` builds only the web module (and what it depends on) as an
        exploded WAR, skipping tests.

        Args:
            verb: Build verb

        Returns:
            Argument list without the executable
        """
        if verb is BuildVerb.PACKAGE:
            return ["package", "war:exploded", "-DskipTests", "-am", "-pl", self.config.app_context]
        return [verb.value]

    async def run(self, verb: BuildVerb, extra_args: Sequence[str] = ()) -> CommandResult:
        """Run one Maven verb.

        Returns a failed CommandResult (without spawning anything) when the
        project path or module is not configured.
        """
        missing = self.config.missing(*REQUIRED_SETTINGS)
        if missing:
            error = ConfigurationMissing(missing)
            self.sink.append_line(f"ERROR: {error}")
            return CommandResult(success=False, error=error.kind, message=str(error))

        executable = self.get_maven_executable()
        args = self.verb_arguments(verb) + list(extra_args)

        self.sink.reveal()
        self.sink.append_line(f"Executing: mvn {' '.join(args)}")
        logger.info("Running %s %s in %s", executable, " ".join(args), self.config.project_path)

        result = await self.executor.execute(
            executable,
            args,
            cwd=self.config.project_path,
            env=self.build_environment(),
            timeout_sec=self.timeout_sec,
        )

        if result.success:
            self.sink.append_line(f"Maven {verb.value} completed successfully")
        elif result.error is ErrorKind.PROCESS_TIMEOUT:
            self.sink.append_line(
                f"ERROR: Timeout: Maven {verb.value} took longer than {self.timeout_sec:g} seconds"
            )
        elif result.error is ErrorKind.NON_ZERO_EXIT:
            self.sink.append_line(f"ERROR: Maven {verb.value} failed with code {result.exit_code}")
        else:
            self.sink.append_line(f"ERROR: Error running Maven: {result.message}")
        return result

    def _failure_summary(self, action: str, result: CommandResult) -> str:
        if result.error is ErrorKind.CONFIGURATION_MISSING:
            return result.message or "Project not configured"
        if result.error is ErrorKind.PROCESS_TIMEOUT:
            return f"{action} timed out"
        if result.error is ErrorKind.PROCESS_SPAWN_FAILURE:
            return f"{action} failed: Maven could not be started. Configure MAVEN_HOME."
        return f"{action} failed (exit code {result.exit_code})"

    async def _run_verb(self, verb: BuildVerb, action: str) -> bool:
        result = await self.run(verb)
        if result.success:
            self.notifier.info(f"Maven {verb.value} completed")
        else:
            self.notifier.error(self._failure_summary(action, result))
        return result.success

    async def compile(self) -> bool:
        return await self._run_verb(BuildVerb.COMPILE, "Compile")

    async def clean(self) -> bool:
        return await self._run_verb(BuildVerb.CLEAN, "Clean")

    async def package(self) -> bool:
        return await self._run_verb(BuildVerb.PACKAGE, "Package")

    async def update_classes(self) -> bool:
        """Compile so the debugger can hot swap the changed classes."""
        self.sink.append_line("Compiling Java classes...")

        result = await self.run(BuildVerb.COMPILE)
        if result.success:
            self.sink.append_line("Classes updated via hotswap")
            self.notifier.info("Classes updated via hotswap")
            return True

        self.notifier.error(self._failure_summary("Compile", result))
        return False

    async def full_rebuild(self) -> bool:
        """Clean, then package the exploded WAR. Package is skipped if clean fails."""
        self.sink.append_line("Running full rebuild...")

        clean_result = await self.run(BuildVerb.CLEAN)
        if not clean_result.success:
            self.notifier.error(self._failure_summary("Project clean", clean_result))
            return False

        package_result = await self.run(BuildVerb.PACKAGE)
        if package_result.success:
            self.sink.append_line("Exploded rebuild completed")
            self.notifier.info("Exploded rebuild completed")
            return True

        self.notifier.error(self._failure_summary("Project package", package_result))
        return False
