# deploy_service/services/executors.py
"""
Step executors: the boundary between the orchestrator and the outside world.

A step executor knows how to fetch a repository, run one build command inside
the checkout, and publish the build output. A non-zero exit code is a normal
`StepResult`; `FetchError`, `ExecutionError` and `PublishError` are reserved
for collaborators that could not do their job at all.
"""

import asyncio
import os
import shutil
import signal
import tempfile
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from deploy_service.config import Settings, settings
from deploy_service.exceptions import ExecutionError, FetchError, PublishError
from deploy_service.logging_config import logger
from deploy_service.utils.helpers import tail_text

IS_POSIX = os.name == "posix"


@dataclass
class StepResult:
    """Outcome of one command run."""

    exit_code: int
    stdout: str
    stderr: str
    duration_ms: int

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class StepExecutor(ABC):
    """Abstract base class for fetch/execute/publish collaborators."""

    @abstractmethod
    async def fetch_source(self, repo_url: str, branch: str) -> Path:
        """Retrieve `branch` of `repo_url` into a fresh working directory."""
        pass

    @abstractmethod
    async def release_source(self, working_directory: Path) -> None:
        """Delete a working directory returned by `fetch_source`."""
        pass

    @abstractmethod
    async def execute_command(
        self,
        command_text: str,
        working_directory: Path,
        terminal_id: Optional[str] = None,
    ) -> StepResult:
        """Run one command to completion inside `working_directory`."""
        pass

    @abstractmethod
    async def publish_output(self, build_output_path: Path, target_path: Path) -> str:
        """Replace the contents of `target_path` with `build_output_path`."""
        pass


async def _terminate(process: asyncio.subprocess.Process) -> None:
    """Kill a child process (and its process group on POSIX) and reap it."""
    if process.returncode is not None:
        return
    try:
        if IS_POSIX:
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except ProcessLookupError:
        pass
    await process.wait()


def _decode(data: Optional[bytes]) -> str:
    return data.decode(errors="replace").strip() if data else ""


class LocalStepExecutor(StepExecutor):
    """
    Runs every step on the local machine.

    Sources are cloned with the git CLI into a temporary directory under
    `working_root`, commands run through the platform shell, and publishing
    is a plain directory copy.
    """

    def __init__(
        self,
        working_root: Path,
        git_executable: str = "git",
        clone_depth: int = 1,
        fetch_timeout: float = 300,
        tail_length: int = 2000,
    ):
        self.working_root = Path(working_root)
        self.git_executable = git_executable
        self.clone_depth = clone_depth
        self.fetch_timeout = fetch_timeout
        self.tail_length = tail_length

    def _clone_command(self, repo_url: str, branch: str, destination: Path) -> List[str]:
        cmd = [self.git_executable, "clone", "--branch", branch, "--single-branch"]
        if self.clone_depth > 0:
            cmd += ["--depth", str(self.clone_depth)]
        cmd += ["--", repo_url, str(destination)]
        return cmd

    async def fetch_source(self, repo_url: str, branch: str) -> Path:
        await asyncio.to_thread(self.working_root.mkdir, parents=True, exist_ok=True)
        destination = Path(
            await asyncio.to_thread(tempfile.mkdtemp, prefix="deploy-", dir=self.working_root)
        )
        logger.info(f"Cloning {repo_url} (branch '{branch}') into {destination}")

        try:
            await self._run_git(self._clone_command(repo_url, branch, destination))
        except BaseException:
            await self.release_source(destination)
            raise

        return destination

    async def _run_git(self, cmd: List[str]) -> None:
        # Never prompt for credentials; a missing credential is a fetch failure.
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                start_new_session=IS_POSIX,
            )
        except OSError as e:
            raise FetchError(f"Could not start '{self.git_executable}': {e}") from e

        try:
            _, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.fetch_timeout
            )
        except asyncio.TimeoutError:
            await _terminate(process)
            raise FetchError(f"Clone timed out after {self.fetch_timeout} seconds")
        except asyncio.CancelledError:
            await _terminate(process)
            raise

        if process.returncode != 0:
            error = tail_text(_decode(stderr), self.tail_length) or "Unknown error"
            raise FetchError(f"git clone exited with code {process.returncode}: {error}")

    async def release_source(self, working_directory: Path) -> None:
        path = Path(working_directory)
        try:
            await asyncio.to_thread(shutil.rmtree, path)
            logger.debug(f"Removed working directory {path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove working directory {path}: {e}")

    async def execute_command(
        self,
        command_text: str,
        working_directory: Path,
        terminal_id: Optional[str] = None,
    ) -> StepResult:
        lane = terminal_id or "default"
        if not Path(working_directory).is_dir():
            raise ExecutionError(f"Working directory {working_directory} does not exist")

        env: Dict[str, str] = {**os.environ}
        if terminal_id:
            env["DEPLOY_TERMINAL_ID"] = terminal_id

        logger.debug(f"[{lane}] $ {command_text}")
        started = time.monotonic()
        try:
            process = await asyncio.create_subprocess_shell(
                command_text,
                cwd=str(working_directory),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                start_new_session=IS_POSIX,
            )
        except (OSError, ValueError) as e:
            raise ExecutionError(f"Could not start command: {e}") from e

        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            # Cancellation and timeouts both land here.
            await _terminate(process)
            raise

        result = StepResult(
            exit_code=process.returncode,
            stdout=_decode(stdout),
            stderr=_decode(stderr),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        for line in result.stdout.splitlines():
            logger.debug(f"[{lane}] {line}")
        for line in result.stderr.splitlines():
            logger.debug(f"[{lane}] (stderr) {line}")
        return result

    async def publish_output(self, build_output_path: Path, target_path: Path) -> str:
        source = Path(build_output_path)
        target = Path(target_path)
        try:
            copied = await asyncio.to_thread(self._replace_directory, source, target)
        except PublishError:
            raise
        except PermissionError as e:
            raise PublishError(
                f"Insufficient permissions or target locked: {e}", str(target)
            ) from e
        except OSError as e:
            raise PublishError(f"Could not publish to {target}: {e}", str(target)) from e

        logger.info(f"Published {copied} files from {source} to {target}")
        return f"Published {copied} files to {target}"

    @staticmethod
    def _replace_directory(source: Path, target: Path) -> int:
        if not source.is_dir():
            raise PublishError(f"Build output directory '{source}' not found", str(target))
        if target.exists() and not target.is_dir():
            raise PublishError(f"Target '{target}' exists and is not a directory", str(target))

        if target.exists():
            shutil.rmtree(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copytree(source, target)
        return sum(1 for p in target.rglob("*") if p.is_file())


def get_step_executor(executor_name: str, app_settings: Optional[Settings] = None) -> StepExecutor:
    """Factory function to get the configured step executor."""
    app_settings = app_settings or settings
    executors = {
        "local": LocalStepExecutor,
    }

    executor_class = executors.get(executor_name.lower())
    if not executor_class:
        raise ValueError(f"Unknown step executor: {executor_name}")

    return executor_class(
        working_root=app_settings.WORKING_DIRECTORY,
        git_executable=app_settings.GIT_EXECUTABLE,
        clone_depth=app_settings.GIT_CLONE_DEPTH,
        fetch_timeout=app_settings.FETCH_TIMEOUT_SECONDS,
        tail_length=app_settings.MESSAGE_TAIL_LENGTH,
    )
