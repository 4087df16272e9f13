"""Tests for the Celery task and the CLI."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID

from typer.testing import CliRunner

from movie_engine.cli import app
from movie_engine.db.models import ProviderBindingModel
from movie_engine.errors import PipelineStageError, RunNotQueuedError
from movie_engine.jobs.pipeline_tasks import execute_movie_pipeline_task

runner = CliRunner()
MOVIE_ID = "6f1c1d3e-2f55-4b8e-9a59-0c8b7d6c5a41"


def _orchestrator(side_effect: Exception | None = None) -> MagicMock:
    orchestrator = MagicMock()
    orchestrator.execute = AsyncMock(side_effect=side_effect)
    return orchestrator


class TestExecuteMoviePipelineTask:
    def test_success(self) -> None:
        orchestrator = _orchestrator()
        with patch(
            "movie_engine.jobs.pipeline_tasks.PipelineOrchestrator", return_value=orchestrator
        ) as mock_cls:
            result = execute_movie_pipeline_task.apply(args=[MOVIE_ID]).get()

        assert result == {"success": True, "movie_id": MOVIE_ID}
        mock_cls.assert_called_once_with(UUID(MOVIE_ID))

    def test_stage_failure_is_reported(self) -> None:
        error = PipelineStageError("generate_videos", "Scene 2 failed: quota exceeded")
        with patch(
            "movie_engine.jobs.pipeline_tasks.PipelineOrchestrator",
            return_value=_orchestrator(error),
        ):
            result = execute_movie_pipeline_task.apply(args=[MOVIE_ID]).get()

        assert result == {
            "success": False,
            "movie_id": MOVIE_ID,
            "stage": "generate_videos",
            "error": "Scene 2 failed: quota exceeded",
        }

    def test_redelivered_task_exits(self) -> None:
        with patch(
            "movie_engine.jobs.pipeline_tasks.PipelineOrchestrator",
            return_value=_orchestrator(RunNotQueuedError("Movie is processing")),
        ):
            result = execute_movie_pipeline_task.apply(args=[MOVIE_ID]).get()

        assert result["success"] is False
        assert "processing" in result["error"]


class TestCLI:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert "Movie Engine v" in result.stdout

    def test_generate_key(self) -> None:
        result = runner.invoke(app, ["providers", "generate-key"])

        assert result.exit_code == 0
        assert len(result.stdout.strip()) == 44

    def test_add_rejects_unknown_provider(self) -> None:
        result = runner.invoke(app, ["providers", "add", "video", "acme"])

        assert result.exit_code == 1
        assert "Unknown provider 'acme'" in result.stdout

    def test_add_and_status(self, session_factory: Any) -> None:
        with patch("movie_engine.db.session.get_session_context", session_factory):
            added_script = runner.invoke(app, ["providers", "add", "script", "stub"])
            runner.invoke(app, ["providers", "add", "storage", "local"])
            added_video = runner.invoke(
                app,
                ["providers", "add", "video", "runway", "--api-key", "rw-key", "--model", "gen4.5"],
            )
            status = runner.invoke(app, ["providers", "status"])

        assert added_script.exit_code == 0
        assert added_video.exit_code == 0
        assert status.exit_code == 0
        assert "Required capabilities are configured" in status.stdout

        with session_factory() as session:
            video = session.query(ProviderBindingModel).filter_by(capability="video").one()
            assert video.api_key_encrypted and video.api_key_encrypted != "rw-key"
            assert video.config == {"model": "gen4.5"}

    def test_status_fails_when_required_missing(self, session_factory: Any) -> None:
        with patch("movie_engine.db.session.get_session_context", session_factory):
            result = runner.invoke(app, ["providers", "status"])

        assert result.exit_code == 1
        assert "Missing provider capabilities: script, video, storage" in result.stdout

    def test_status_probe_reports_reachability(self, session_factory: Any) -> None:
        with patch("movie_engine.db.session.get_session_context", session_factory):
            runner.invoke(app, ["providers", "add", "script", "stub"])
            runner.invoke(app, ["providers", "add", "storage", "local"])
            runner.invoke(app, ["providers", "add", "video", "runway", "--api-key", "rw-key"])
            with patch(
                "movie_engine.adapters.video_gen.runway.RunwayProvider.health_check",
                new_callable=AsyncMock,
                return_value=False,
            ):
                result = runner.invoke(app, ["providers", "status", "--probe"])

        assert result.exit_code == 0
        assert "(reachable)" in result.stdout
        assert "(unreachable)" in result.stdout

    def test_rotate_keys(self, session_factory: Any) -> None:
        with patch("movie_engine.db.session.get_session_context", session_factory):
            runner.invoke(
                app, ["providers", "add", "video", "runway", "--api-key", "rw-key"]
            )
            result = runner.invoke(app, ["providers", "rotate-keys"])

        assert result.exit_code == 0
        assert "Re-encrypted 1 credential(s)" in result.stdout
