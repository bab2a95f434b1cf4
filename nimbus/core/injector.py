"""
Source injection - writes user code and the generated entry point.

The user's code is opaque text; validating it is the bundler's job.
"""
import logging

from nimbus.core.errors import WorkspaceError
from nimbus.core.workspace import GLOBALS_CSS, Workspace

logger = logging.getLogger(__name__)

COMPONENT_FILE = "UserComponent.tsx"
ENTRY_FILE = "index.tsx"

ENTRY_POINT_TEMPLATE = """\
import React from "react";
import ReactDOM from "react-dom/client";
// @ts-ignore
import UserComponent from "./{component_module}";
import "./{stylesheet}";

const rootEl = document.getElementById("root");
if (rootEl) {{
  ReactDOM.createRoot(rootEl).render(<UserComponent />);
}}
"""


def render_entry_point() -> str:
    """Entry point that mounts the user component into #root."""
    return ENTRY_POINT_TEMPLATE.format(
        component_module=COMPONENT_FILE.rsplit(".", 1)[0],
        stylesheet=GLOBALS_CSS,
    )


class SourceInjector:
    """Writes the component source and entry point into a workspace's src dir."""

    def inject(self, workspace: Workspace, code: str) -> None:
        """
        Raises:
            WorkspaceError: If either file cannot be written
        """
        component_path = workspace.src_dir / COMPONENT_FILE
        try:
            component_path.write_bytes(code.encode("utf-8"))
        except (OSError, UnicodeEncodeError) as e:
            logger.error(
                f"write_component_failed component_id={workspace.component_id} error={type(e).__name__}",
                extra={"component_id": workspace.component_id},
            )
            raise WorkspaceError(f"Failed to write component file: {e}") from e

        entry_path = workspace.src_dir / ENTRY_FILE
        try:
            entry_path.write_text(render_entry_point(), encoding="utf-8")
        except OSError as e:
            logger.error(
                f"write_entry_point_failed component_id={workspace.component_id} error={type(e).__name__}",
                extra={"component_id": workspace.component_id},
            )
            raise WorkspaceError(f"Failed to write entry point: {e}") from e

        logger.info(
            f"source_injected component_id={workspace.component_id} bytes={len(code.encode('utf-8'))}",
            extra={"component_id": workspace.component_id},
        )
