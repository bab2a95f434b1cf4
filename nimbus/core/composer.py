"""
Static HTML shell for a built component.
"""
import html
import logging

from nimbus.core.builders import SCRIPT_OUTPUT, STYLESHEET_OUTPUT
from nimbus.core.errors import WorkspaceError
from nimbus.core.workspace import Workspace

logger = logging.getLogger(__name__)

HTML_OUTPUT = "index.html"
PAGE_TITLE = "Rendered Component"

HTML_TEMPLATE = """\
<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>{title}</title>
    <link rel="stylesheet" href="./{stylesheet}" />
  </head>
  <body>
    <div id="root"></div>
    <script type="module" src="./{script}"></script>
  </body>
</html>
"""


class HtmlComposer:
    """Writes dist/index.html referencing the compiled script and stylesheet."""

    def render(
        self,
        script_name: str = SCRIPT_OUTPUT,
        stylesheet_name: str = STYLESHEET_OUTPUT,
    ) -> str:
        return HTML_TEMPLATE.format(
            title=PAGE_TITLE,
            stylesheet=html.escape(stylesheet_name, quote=True),
            script=html.escape(script_name, quote=True),
        )

    def compose(self, workspace: Workspace) -> None:
        """
        Raises:
            WorkspaceError: If the document cannot be written
        """
        try:
            (workspace.dist_dir / HTML_OUTPUT).write_text(self.render(), encoding="utf-8")
        except OSError as e:
            raise WorkspaceError(f"Failed to write {HTML_OUTPUT}: {e}") from e

        logger.info(
            f"html_composed component_id={workspace.component_id}",
            extra={"component_id": workspace.component_id},
        )
