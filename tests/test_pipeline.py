"""
Tests for the build pipeline.
"""
import shutil
from contextlib import contextmanager

import pytest

from nimbus.core.errors import BuildToolError, PublishError, WorkspaceError
from nimbus.core.metrics import metrics
from nimbus.core.pipeline import PipelineRun, Stage

CODE = "export default () => <div>hi</div>;"


class TestPipelineSuccess:
    """Tests for the happy path."""

    def test_publishes_three_artifacts(self, pipeline, object_store):
        result = pipeline.run("abc123", CODE)

        assert sorted(object_store.objects) == [
            "abc123/index.css",
            "abc123/index.html",
            "abc123/index.js",
        ]
        assert sorted(result.published_keys) == sorted(object_store.objects)

    def test_urls(self, pipeline):
        result = pipeline.run("abc123", CODE)

        assert result.render_url == "https://abc123.preview.example.test/index.html"
        assert result.original_url == "https://cdn.example.test/abc123/index.html"

    def test_content_types(self, pipeline, object_store):
        pipeline.run("abc123", CODE)

        assert object_store.objects["abc123/index.html"][1] == "text/html"
        assert object_store.objects["abc123/index.js"][1] == "application/javascript"
        assert object_store.objects["abc123/index.css"][1] == "text/css"

    def test_stage_order(self, pipeline):
        record = PipelineRun(component_id="abc123")

        pipeline.run("abc123", CODE, record=record)

        assert record.stages == [
            Stage.INIT,
            Stage.WORKSPACE_CREATED,
            Stage.SOURCE_WRITTEN,
            Stage.BUNDLE_BUILT,
            Stage.STYLE_BUILT,
            Stage.HTML_COMPOSED,
            Stage.PUBLISHED,
            Stage.CLEANED,
        ]
        assert record.succeeded is True

    def test_bundler_runs_before_css(self, pipeline, tool_runner):
        pipeline.run("abc123", CODE)

        assert tool_runner.subcommands == ["build", "x"]

    def test_user_code_reaches_bundler(self, pipeline, tool_runner, monkeypatch):
        """The source is in place when the bundler runs."""
        seen = {}
        original_run = tool_runner.run

        def spy(cmd, cwd):
            if cmd[1] == "build":
                seen["code"] = (cwd / "src" / "UserComponent.tsx").read_text()
            return original_run(cmd, cwd)

        monkeypatch.setattr(tool_runner, "run", spy)
        pipeline.run("abc123", CODE)

        assert seen["code"] == CODE

    def test_workspace_removed(self, pipeline, workspace_root):
        pipeline.run("abc123", CODE)

        assert list(workspace_root.iterdir()) == []

    def test_metrics(self, pipeline):
        started = metrics.get("builds_started_total")
        succeeded = metrics.get("builds_succeeded_total")

        pipeline.run("abc123", CODE)

        assert metrics.get("builds_started_total") == started + 1
        assert metrics.get("builds_succeeded_total") == succeeded + 1


class TestPipelineFailure:
    """Tests for failure paths and the cleanup guarantee."""

    def test_bundler_failure(self, pipeline, tool_runner, object_store, workspace_root):
        tool_runner.fail("build", exit_code=1, stderr="SyntaxError: Unexpected token (1:5)")
        record = PipelineRun(component_id="abc123")

        with pytest.raises(BuildToolError) as exc_info:
            pipeline.run("abc123", "export default (", record=record)

        assert "SyntaxError" in exc_info.value.stderr
        assert object_store.attempts == []
        assert tool_runner.subcommands == ["build"]
        assert list(workspace_root.iterdir()) == []
        assert record.stages[-2:] == [Stage.SOURCE_WRITTEN, Stage.CLEANED]
        assert record.error is exc_info.value

    def test_css_failure(self, pipeline, tool_runner, object_store, workspace_root):
        tool_runner.fail("x", exit_code=1, stderr="CssSyntaxError")
        record = PipelineRun(component_id="abc123")

        with pytest.raises(BuildToolError):
            pipeline.run("abc123", CODE, record=record)

        assert object_store.attempts == []
        assert list(workspace_root.iterdir()) == []
        assert Stage.BUNDLE_BUILT in record.stages
        assert Stage.STYLE_BUILT not in record.stages

    def test_publish_failure(self, pipeline, object_store, workspace_root):
        object_store.fail_keys.add("abc123/index.css")
        record = PipelineRun(component_id="abc123")

        with pytest.raises(PublishError):
            pipeline.run("abc123", CODE, record=record)

        assert list(workspace_root.iterdir()) == []
        assert record.stages[-2:] == [Stage.HTML_COMPOSED, Stage.CLEANED]
        assert record.succeeded is False

    def test_workspace_failure(self, pipeline, template_dir, tool_runner, object_store):
        shutil.rmtree(template_dir)
        record = PipelineRun(component_id="abc123")

        with pytest.raises(WorkspaceError):
            pipeline.run("abc123", CODE, record=record)

        assert record.stages == [Stage.INIT, Stage.CLEANED]
        assert tool_runner.calls == []
        assert object_store.attempts == []

    def test_cleanup_failure_does_not_change_result(self, pipeline, monkeypatch):
        """A workspace that cannot be removed is logged, the build still succeeds."""
        monkeypatch.setattr(pipeline.workspace_manager, "teardown", lambda workspace: False)

        result = pipeline.run("abc123", CODE)

        assert result.render_url.startswith("https://abc123.")

    def test_cleanup_failure_keeps_original_error(self, pipeline, tool_runner, monkeypatch):
        tool_runner.fail("build", exit_code=1, stderr="SyntaxError")
        monkeypatch.setattr(pipeline.workspace_manager, "teardown", lambda workspace: False)

        with pytest.raises(BuildToolError):
            pipeline.run("abc123", CODE)

    def test_failure_metrics(self, pipeline, tool_runner):
        tool_runner.fail("build", exit_code=1, stderr="boom")
        failed = metrics.get("builds_failed_total")

        with pytest.raises(BuildToolError):
            pipeline.run("abc123", CODE)
        assert metrics.get("builds_failed_total") == failed + 1


class TestPipelineWorkspaceScope:
    """The workspace lives exactly as long as the manager's acquire() block."""

    @pytest.fixture
    def scopes(self, pipeline, monkeypatch):
        manager = pipeline.workspace_manager
        original_acquire = manager.acquire
        events = []

        @contextmanager
        def tracking_acquire(component_id):
            events.append(("enter", component_id))
            try:
                with original_acquire(component_id) as workspace:
                    yield workspace
            finally:
                events.append(("exit", workspace_exists(manager)))

        monkeypatch.setattr(manager, "acquire", tracking_acquire)
        return events

    def test_success_goes_through_acquire(self, pipeline, scopes):
        pipeline.run("abc123", CODE)

        assert scopes == [("enter", "abc123"), ("exit", False)]

    def test_failure_goes_through_acquire(self, pipeline, tool_runner, scopes):
        tool_runner.fail("build", exit_code=1, stderr="SyntaxError")

        with pytest.raises(BuildToolError):
            pipeline.run("abc123", CODE)

        assert scopes == [("enter", "abc123"), ("exit", False)]


def workspace_exists(manager) -> bool:
    return any(manager.base_dir.iterdir())
