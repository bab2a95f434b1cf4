"""
Build pipeline - sequences the build stages for one request.

    INIT -> WORKSPACE_CREATED -> SOURCE_WRITTEN -> BUNDLE_BUILT -> STYLE_BUILT
         -> HTML_COMPOSED -> PUBLISHED -> CLEANED

Each stage runs only if the previous one succeeded. Any failure jumps
straight to CLEANED: the workspace is torn down and the original error is
re-raised unchanged. Nothing is uploaded until both build tools succeed.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from nimbus.core.builders import BundleBuilder, StyleBuilder
from nimbus.core.composer import HtmlComposer
from nimbus.core.config import NimbusConfig
from nimbus.core.injector import SourceInjector
from nimbus.core.metrics import metrics
from nimbus.core.object_store import ObjectStore
from nimbus.core.publisher import ArtifactPublisher, collect_artifacts
from nimbus.core.tool_runner import ToolRunner
from nimbus.core.workspace import WorkspaceManager

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    """Pipeline stage reached."""
    INIT = "init"
    WORKSPACE_CREATED = "workspace_created"
    SOURCE_WRITTEN = "source_written"
    BUNDLE_BUILT = "bundle_built"
    STYLE_BUILT = "style_built"
    HTML_COMPOSED = "html_composed"
    PUBLISHED = "published"
    CLEANED = "cleaned"


@dataclass
class PipelineRun:
    """Progress record of one pipeline invocation."""
    component_id: str
    stages: list[Stage] = field(default_factory=lambda: [Stage.INIT])
    error: Optional[Exception] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def stage(self) -> Stage:
        return self.stages[-1]

    @property
    def succeeded(self) -> bool:
        return Stage.PUBLISHED in self.stages and self.error is None

    def advance(self, stage: Stage) -> None:
        self.stages.append(stage)
        logger.info(
            f"stage component_id={self.component_id} stage={stage.value}",
            extra={"component_id": self.component_id, "stage": stage.value},
        )

    def elapsed_ms(self) -> int:
        return int((datetime.now(timezone.utc) - self.started_at).total_seconds() * 1000)


@dataclass(frozen=True)
class BuildResult:
    """Public URLs of a published build."""
    component_id: str
    render_url: str
    original_url: str
    published_keys: tuple[str, ...]


class Pipeline:
    """Runs one build from source code to published URLs."""

    def __init__(
        self,
        config: NimbusConfig,
        tool_runner: ToolRunner,
        object_store: ObjectStore,
        workspace_manager: Optional[WorkspaceManager] = None,
    ):
        self._config = config
        self._workspaces = workspace_manager or WorkspaceManager(
            config.workspace_root, config.template_dir
        )
        self._injector = SourceInjector()
        self._bundler = BundleBuilder(tool_runner, config.bun_path)
        self._styler = StyleBuilder(tool_runner, config.bun_path)
        self._composer = HtmlComposer()
        self._publisher = ArtifactPublisher(object_store)

    @property
    def config(self) -> NimbusConfig:
        return self._config

    @property
    def workspace_manager(self) -> WorkspaceManager:
        return self._workspaces

    def run(self, component_id: str, code: str, record: Optional[PipelineRun] = None) -> BuildResult:
        """
        Build and publish a component.

        Args:
            component_id: Caller-supplied id, used as the storage key prefix
            code: Component source, written verbatim
            record: Optional progress record to fill in (for callers that
                want the stage history)

        Raises:
            WorkspaceError, BuildToolError, PublishError: From the failing stage
        """
        run = record or PipelineRun(component_id=component_id)
        metrics.inc("builds_started_total")

        try:
            # The workspace is gone by the time either branch below runs
            with self._workspaces.acquire(component_id) as workspace:
                run.advance(Stage.WORKSPACE_CREATED)

                self._injector.inject(workspace, code)
                run.advance(Stage.SOURCE_WRITTEN)

                self._bundler.build(workspace)
                run.advance(Stage.BUNDLE_BUILT)

                self._styler.build(workspace)
                run.advance(Stage.STYLE_BUILT)

                self._composer.compose(workspace)
                run.advance(Stage.HTML_COMPOSED)

                artifacts = collect_artifacts(workspace.dist_dir)
                keys = self._publisher.publish(component_id, artifacts)
                run.advance(Stage.PUBLISHED)

        except Exception as e:
            run.error = e
            metrics.inc("builds_failed_total")
            logger.warning(
                f"build_failed component_id={component_id} stage={run.stage.value} "
                f"error_type={type(e).__name__}",
                extra={"component_id": component_id, "stage": run.stage.value},
            )
            raise

        finally:
            run.advance(Stage.CLEANED)

        metrics.inc("builds_succeeded_total")
        logger.info(
            f"build_done component_id={component_id} artifacts={len(keys)}",
            extra={"component_id": component_id, "duration_ms": run.elapsed_ms()},
        )

        return BuildResult(
            component_id=component_id,
            render_url=self._config.render_url(component_id),
            original_url=self._config.original_url(component_id),
            published_keys=tuple(keys),
        )
