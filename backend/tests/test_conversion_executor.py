import asyncio
import os
import time
from pathlib import Path

import pytest

from doc2pdf.core.enums import OutcomeKind
from doc2pdf.core.errors import (
    EngineNonZeroExit,
    EngineTimeout,
    EngineUnavailable,
    NoOutputProduced,
)
from doc2pdf.services.conversion_executor import ConversionExecutor
from doc2pdf.services.job_service import JobService


def _is_gone(pid, timeout=2.0):
    """Muerto: ya no existe o es un zombi pendiente de que init lo recoja."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return True
        try:
            stat = Path(f"/proc/{pid}/stat").read_text()
        except OSError:
            return True
        if stat.rsplit(")", 1)[-1].split()[0] == "Z":
            return True
        time.sleep(0.05)
    return False


def _read_pid(path):
    return int(path.read_text().strip())


def _stored_job(tmp_path, timeout_seconds=10.0):
    job = JobService().create_job(
        original_filename="report.docx", upload_dir=tmp_path, output_dir=tmp_path
    )
    job.input_path.write_bytes(b"fake docx")
    job.mark_admitted(timeout_seconds)
    return job


def test_build_command_uses_headless_batch_mode(tmp_path):
    executor = ConversionExecutor(binary="soffice", target_format="pdf")

    cmd = executor.build_command(Path("/data/in.docx"), Path("/data/out"))

    assert cmd[0] == "soffice"
    assert "--headless" in cmd
    assert cmd[-5:] == ["--convert-to", "pdf", "--outdir", "/data/out", "/data/in.docx"]
    assert executor.expected_output(Path("/data/in.docx"), Path("/data/out")) == Path(
        "/data/out/in.pdf"
    )


def test_convert_returns_generated_file(tmp_path, make_engine):
    executor = ConversionExecutor(binary=make_engine("success"))
    job = _stored_job(tmp_path)

    output = asyncio.run(executor.convert(job))

    assert output == job.output_path
    assert output.read_bytes() == b"%PDF-1.4 stub"
    assert job.timing_convert_ms is not None


def test_non_zero_exit_is_a_conversion_failure(tmp_path, make_engine):
    executor = ConversionExecutor(binary=make_engine("fail"))
    job = _stored_job(tmp_path)

    with pytest.raises(EngineNonZeroExit) as exc_info:
        asyncio.run(executor.convert(job))

    assert "could not be loaded" in exc_info.value.detail


def test_exit_zero_without_output_is_not_success(tmp_path, make_engine):
    executor = ConversionExecutor(binary=make_engine("silent"))
    job = _stored_job(tmp_path)

    with pytest.raises(NoOutputProduced):
        asyncio.run(executor.convert(job))


def test_missing_engine_is_reported_as_unavailable(tmp_path):
    executor = ConversionExecutor(binary=str(tmp_path / "no-such-soffice"))
    job = _stored_job(tmp_path)

    outcome = asyncio.run(executor.run_engine(job.input_path, tmp_path, 5))
    assert outcome.kind == OutcomeKind.CRASHED

    with pytest.raises(EngineUnavailable):
        asyncio.run(executor.convert(job))


def test_deadline_kills_engine_quickly(tmp_path, make_engine):
    executor = ConversionExecutor(binary=make_engine("hang"))
    job = _stored_job(tmp_path)

    started = time.monotonic()
    outcome = asyncio.run(executor.run_engine(job.input_path, tmp_path, 0.1))
    elapsed = time.monotonic() - started

    assert outcome.kind == OutcomeKind.TIMED_OUT
    assert elapsed < 2.0
    # Proceso muerto y recogido
    with pytest.raises(ProcessLookupError):
        os.kill(outcome.pid, 0)


def test_deadline_also_kills_engine_children(tmp_path, make_engine):
    executor = ConversionExecutor(binary=make_engine("hang_child"))
    job = _stored_job(tmp_path)

    outcome = asyncio.run(executor.run_engine(job.input_path, tmp_path, 0.5))

    assert outcome.kind == OutcomeKind.TIMED_OUT
    assert _read_pid(tmp_path / "engine.pid") == outcome.pid
    assert _is_gone(_read_pid(tmp_path / "child.pid"))


def test_cancelled_run_kills_and_reaps_engine(tmp_path, make_engine):
    executor = ConversionExecutor(binary=make_engine("hang_child"))
    job = _stored_job(tmp_path)
    child_file = tmp_path / "child.pid"

    async def scenario():
        task = asyncio.create_task(executor.run_engine(job.input_path, tmp_path, 30))
        for _ in range(100):
            if child_file.exists():
                break
            await asyncio.sleep(0.02)
        assert child_file.exists()

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    started = time.monotonic()
    asyncio.run(scenario())

    assert time.monotonic() - started < 4.0
    with pytest.raises(ProcessLookupError):
        os.kill(_read_pid(tmp_path / "engine.pid"), 0)
    assert _is_gone(_read_pid(child_file))


def test_convert_uses_time_left_until_job_deadline(tmp_path, make_engine):
    executor = ConversionExecutor(binary=make_engine("hang"))
    job = _stored_job(tmp_path, timeout_seconds=0.1)

    started = time.monotonic()
    with pytest.raises(EngineTimeout):
        asyncio.run(executor.convert(job))

    assert time.monotonic() - started < 2.0
