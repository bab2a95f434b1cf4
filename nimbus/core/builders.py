"""
Build steps that shell out to bun.

- BundleBuilder: bun build ./src/index.tsx --outdir ./dist --target browser
- StyleBuilder:  bun x tailwindcss -i src/globals.css -o dist/index.css

Both block until the tool exits. A non-zero exit (or a tool that cannot be
launched) raises BuildToolError carrying the captured stderr.
"""
import logging

from nimbus.core.errors import BuildToolError
from nimbus.core.injector import ENTRY_FILE
from nimbus.core.metrics import metrics
from nimbus.core.tool_runner import CommandResult, ToolRunner
from nimbus.core.workspace import DIST_DIR, GLOBALS_CSS, SRC_DIR, Workspace

logger = logging.getLogger(__name__)

SCRIPT_OUTPUT = "index.js"
STYLESHEET_OUTPUT = "index.css"

# Logged stderr is capped; the full text goes into the error
MAX_LOGGED_STDERR = 2000


class _ToolStep:
    """Shared run-and-check logic for a single external tool invocation."""

    tool_name = ""

    def __init__(self, runner: ToolRunner, bun_path: str):
        self._runner = runner
        self._bun_path = bun_path

    def command(self, workspace: Workspace) -> list[str]:
        raise NotImplementedError

    def build(self, workspace: Workspace) -> CommandResult:
        """
        Run the tool in the workspace root.

        Raises:
            BuildToolError: If the tool exits non-zero
        """
        cmd = self.command(workspace)
        logger.info(
            f"tool_start tool={self.tool_name} component_id={workspace.component_id}",
            extra={"component_id": workspace.component_id, "tool": self.tool_name},
        )

        result = self._runner.run(cmd, workspace.root)

        if not result.ok:
            metrics.inc("build_tool_failures_total")
            logger.error(
                f"tool_failed tool={self.tool_name} exit_code={result.exit_code} "
                f"stderr={result.stderr[:MAX_LOGGED_STDERR]!r}",
                extra={
                    "component_id": workspace.component_id,
                    "tool": self.tool_name,
                    "exit_code": result.exit_code,
                    "duration_ms": result.duration_ms,
                },
            )
            raise BuildToolError(self.tool_name, result.exit_code, result.stderr)

        logger.info(
            f"tool_done tool={self.tool_name} duration_ms={result.duration_ms}",
            extra={
                "component_id": workspace.component_id,
                "tool": self.tool_name,
                "exit_code": result.exit_code,
                "duration_ms": result.duration_ms,
            },
        )
        return result


class BundleBuilder(_ToolStep):
    """Bundles the entry point into dist/index.js for the browser."""

    tool_name = "bun build"

    def command(self, workspace: Workspace) -> list[str]:
        return [
            self._bun_path,
            "build",
            f"./{SRC_DIR}/{ENTRY_FILE}",
            "--outdir",
            f"./{DIST_DIR}",
            "--target",
            "browser",
        ]


class StyleBuilder(_ToolStep):
    """Compiles the seeded globals.css through tailwind into dist/index.css."""

    tool_name = "tailwindcss"

    def command(self, workspace: Workspace) -> list[str]:
        return [
            self._bun_path,
            "x",
            "tailwindcss",
            "-i",
            str(workspace.src_dir / GLOBALS_CSS),
            "-o",
            str(workspace.dist_dir / STYLESHEET_OUTPUT),
        ]
