"""Tests for the process runner."""

import asyncio
import os
import time

import pytest

from engine.src.services.process_runner import (
    SpawnError,
    StepCancelledError,
    StepTimeoutError,
    run_command,
)

from conftest import make_settings

SETTINGS = make_settings(kill_grace_period=0.5)

def assert_not_alive(pid):
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)

@pytest.mark.asyncio
async def test_successful_command(tmp_path):
    result = await run_command("echo hello", str(tmp_path), timeout=5, settings=SETTINGS)

    assert result.exit_code == 0
    assert result.succeeded
    assert result.stdout == "hello"
    assert result.stderr == ""

@pytest.mark.asyncio
async def test_runs_in_working_directory(tmp_path):
    result = await run_command("pwd", str(tmp_path), timeout=5, settings=SETTINGS)
    assert os.path.realpath(result.stdout) == os.path.realpath(str(tmp_path))

@pytest.mark.asyncio
async def test_non_zero_exit_is_a_result(tmp_path):
    result = await run_command("echo broken >&2; exit 3", str(tmp_path), timeout=5, settings=SETTINGS)

    assert result.exit_code == 3
    assert not result.succeeded
    assert result.stderr == "broken"

@pytest.mark.asyncio
async def test_missing_executable_exits_127(tmp_path):
    result = await run_command("definitely-not-a-real-tool", str(tmp_path), timeout=5, settings=SETTINGS)
    assert result.exit_code == 127

@pytest.mark.asyncio
async def test_output_is_forwarded_per_stream(tmp_path):
    chunks = []
    result = await run_command(
        "echo out; echo err >&2",
        str(tmp_path),
        timeout=5,
        on_output=lambda stream, text: chunks.append((stream, text.strip())),
        settings=SETTINGS,
    )

    assert result.succeeded
    assert ("stdout", "out") in chunks
    assert ("stderr", "err") in chunks

@pytest.mark.asyncio
async def test_large_output_is_accumulated(tmp_path):
    settings = make_settings(output_chunk_size=64)
    chunks = []
    result = await run_command(
        "seq 1 5000",
        str(tmp_path),
        timeout=10,
        on_output=lambda stream, text: chunks.append(text),
        settings=settings,
    )

    lines = result.stdout.splitlines()
    assert len(lines) == 5000
    assert lines[-1] == "5000"
    assert len(chunks) > 1

@pytest.mark.asyncio
async def test_timeout_kills_process(tmp_path):
    chunks = []
    started = time.monotonic()

    with pytest.raises(StepTimeoutError, match="timed out after 0.2s") as exc_info:
        await run_command(
            "echo $$; sleep 5",
            str(tmp_path),
            timeout=0.2,
            on_output=lambda stream, text: chunks.append(text),
            settings=SETTINGS,
        )

    assert time.monotonic() - started < 3
    pid = int(exc_info.value.stdout)
    assert_not_alive(pid)

@pytest.mark.asyncio
async def test_missing_working_directory_is_spawn_error(tmp_path):
    with pytest.raises(SpawnError):
        await run_command("true", str(tmp_path / "missing"), timeout=5, settings=SETTINGS)

@pytest.mark.asyncio
async def test_cancel_event_terminates_process(tmp_path):
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    loop.call_later(0.2, cancel_event.set)
    started = time.monotonic()

    with pytest.raises(StepCancelledError) as exc_info:
        await run_command(
            "echo $$; sleep 5",
            str(tmp_path),
            timeout=10,
            cancel_event=cancel_event,
            settings=SETTINGS,
        )

    assert time.monotonic() - started < 3
    assert_not_alive(int(exc_info.value.stdout))

@pytest.mark.asyncio
async def test_term_ignoring_process_is_killed(tmp_path):
    started = time.monotonic()

    with pytest.raises(StepTimeoutError):
        await run_command(
            "trap '' TERM; sleep 5",
            str(tmp_path),
            timeout=0.2,
            settings=make_settings(kill_grace_period=0.3),
        )

    assert time.monotonic() - started < 3

@pytest.mark.asyncio
async def test_signal_exit_is_not_success(tmp_path):
    result = await run_command("kill -TERM $$", str(tmp_path), timeout=5, settings=SETTINGS)

    assert result.exit_code != 0
    assert not result.succeeded
