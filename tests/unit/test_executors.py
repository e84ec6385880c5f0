"""
Tests for the local step executor against real processes and directories.
"""
import asyncio
import os
import shutil
import subprocess
import sys
import time

import pytest

from deploy_service.exceptions import ExecutionError, FetchError, PublishError
from deploy_service.services.executors import (
    LocalStepExecutor,
    StepResult,
    get_step_executor,
)


@pytest.fixture
def executor(tmp_path) -> LocalStepExecutor:
    return LocalStepExecutor(working_root=tmp_path / "work", fetch_timeout=30)


def _python(code: str) -> str:
    return f'"{sys.executable}" -c "{code}"'


def test_get_step_executor_local(test_settings):
    executor = get_step_executor("local", test_settings)
    assert isinstance(executor, LocalStepExecutor)
    assert executor.working_root == test_settings.WORKING_DIRECTORY


def test_get_step_executor_unknown():
    with pytest.raises(ValueError):
        get_step_executor("kubernetes")


def test_step_result_succeeded():
    assert StepResult(0, "", "", 1).succeeded
    assert not StepResult(1, "", "", 1).succeeded


class TestExecuteCommand:
    @pytest.mark.asyncio
    async def test_successful_command(self, executor, tmp_path):
        result = await executor.execute_command(_python("print('hello')"), tmp_path, "t1")
        assert result.exit_code == 0
        assert result.stdout == "hello"
        assert result.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_a_result(self, executor, tmp_path):
        result = await executor.execute_command(
            _python("import sys; sys.stderr.write('bad'); sys.exit(3)"), tmp_path
        )
        assert result.exit_code == 3
        assert result.stderr == "bad"
        assert not result.succeeded

    @pytest.mark.asyncio
    async def test_runs_inside_working_directory(self, executor, tmp_path):
        (tmp_path / "marker.txt").write_text("here")
        result = await executor.execute_command(
            _python("print(open('marker.txt').read())"), tmp_path
        )
        assert result.stdout == "here"

    @pytest.mark.asyncio
    async def test_terminal_id_is_exported(self, executor, tmp_path):
        result = await executor.execute_command(
            _python("import os; print(os.environ['DEPLOY_TERMINAL_ID'])"), tmp_path, "build"
        )
        assert result.stdout == "build"

    @pytest.mark.asyncio
    async def test_missing_working_directory(self, executor, tmp_path):
        with pytest.raises(ExecutionError):
            await executor.execute_command("echo hi", tmp_path / "missing")

    @pytest.mark.asyncio
    async def test_nul_byte_in_command_cannot_start(self, executor, tmp_path):
        with pytest.raises(ExecutionError) as excinfo:
            await executor.execute_command("echo a\x00b", tmp_path)
        assert "Could not start command" in excinfo.value.reason

    @pytest.mark.asyncio
    @pytest.mark.skipif(os.name != "posix", reason="process groups are POSIX only")
    async def test_timeout_kills_the_whole_process_group(self, executor, tmp_path):
        started = time.monotonic()
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(
                executor.execute_command("sleep 1; touch marker", tmp_path), 0.2
            )
        assert time.monotonic() - started < 1

        # The shell's children went with it, so nothing runs after the timeout.
        await asyncio.sleep(1.5)
        assert not (tmp_path / "marker").exists()


class TestPublishOutput:
    @pytest.mark.asyncio
    async def test_publish_copies_output(self, executor, tmp_path):
        source = tmp_path / "checkout" / "dist"
        (source / "assets").mkdir(parents=True)
        (source / "index.html").write_text("<h1>hi</h1>")
        (source / "assets" / "app.js").write_text("console.log(1)")
        target = tmp_path / "publications" / "shop"

        message = await executor.publish_output(source, target)

        assert (target / "index.html").read_text() == "<h1>hi</h1>"
        assert (target / "assets" / "app.js").exists()
        assert "2 files" in message

    @pytest.mark.asyncio
    async def test_publish_replaces_previous_contents(self, executor, tmp_path):
        source = tmp_path / "dist"
        source.mkdir()
        (source / "new.html").write_text("new")
        target = tmp_path / "publications" / "shop"
        target.mkdir(parents=True)
        (target / "stale.html").write_text("old")

        await executor.publish_output(source, target)

        assert (target / "new.html").exists()
        assert not (target / "stale.html").exists()

    @pytest.mark.asyncio
    async def test_missing_build_output(self, executor, tmp_path):
        with pytest.raises(PublishError) as excinfo:
            await executor.publish_output(tmp_path / "nope", tmp_path / "target")
        assert "not found" in excinfo.value.reason

    @pytest.mark.asyncio
    async def test_target_is_a_file(self, executor, tmp_path):
        source = tmp_path / "dist"
        source.mkdir()
        target = tmp_path / "target"
        target.write_text("in the way")
        with pytest.raises(PublishError):
            await executor.publish_output(source, target)


class TestFetchSource:
    @pytest.mark.asyncio
    async def test_missing_git_executable(self, tmp_path):
        executor = LocalStepExecutor(
            working_root=tmp_path / "work", git_executable="definitely-not-git"
        )
        with pytest.raises(FetchError):
            await executor.fetch_source("https://example.com/r.git", "main")
        assert list((tmp_path / "work").iterdir()) == []

    @pytest.mark.asyncio
    @pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
    async def test_clone_unknown_repository_fails(self, executor, tmp_path):
        with pytest.raises(FetchError) as excinfo:
            await executor.fetch_source(str(tmp_path / "no-such-repo"), "main")
        assert "git clone exited with code" in excinfo.value.reason
        assert list((tmp_path / "work").iterdir()) == []

    @pytest.mark.asyncio
    @pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
    async def test_clone_and_release(self, executor, tmp_path):
        repo = tmp_path / "repo"
        repo.mkdir()
        (repo / "index.html").write_text("hello")
        git = ["git", "-c", "user.email=t@example.com", "-c", "user.name=t"]
        subprocess.run(["git", "init", "-q", "-b", "main", str(repo)], check=True)
        subprocess.run(git + ["-C", str(repo), "add", "."], check=True)
        subprocess.run(git + ["-C", str(repo), "commit", "-q", "-m", "init"], check=True)

        checkout = await executor.fetch_source(f"file://{repo}", "main")
        assert (checkout / "index.html").read_text() == "hello"
        assert checkout.parent == tmp_path / "work"

        await executor.release_source(checkout)
        assert not checkout.exists()

    @pytest.mark.asyncio
    async def test_release_missing_directory_is_a_no_op(self, executor, tmp_path):
        await executor.release_source(tmp_path / "gone")
