"""
Workspace management - one isolated directory tree per build.

Layout of a workspace:

    <root>/<component_id>-<suffix>/
        ... template skeleton (package.json, tailwind.config.js, node_modules)
        src/    template globals.css + injected sources
        dist/   build outputs

The suffix is random, so two builds of the same component_id never share a
directory. Workspaces are created by copying the skeleton into a private
staging directory and renaming it into place.
"""
import logging
import os
import re
import shutil
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from pathlib import Path
from typing import Iterator, Optional

from nimbus.core.errors import CleanupError, WorkspaceError
from nimbus.core.metrics import metrics

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

SRC_DIR = "src"
DIST_DIR = "dist"
GLOBALS_CSS = "globals.css"

STAGING_PREFIX = ".staging-"
SUFFIX_LENGTH = 12

# Leftovers from crashed processes are swept at startup
WORKSPACE_RETENTION_HOURS = 1

# One lowercase DNS label: the id is the preview subdomain as well as a
# path segment and the storage key prefix
COMPONENT_ID_MAX_LENGTH = 63
COMPONENT_ID_PATTERN = re.compile(r"[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?")
WORKSPACE_NAME_PATTERN = re.compile(
    rf"(?:{COMPONENT_ID_PATTERN.pattern}-|{re.escape(STAGING_PREFIX)})[0-9a-f]{{{SUFFIX_LENGTH}}}"
)


def is_safe_component_id(component_id: str) -> bool:
    """Check that an id is a valid hostname label (and so a safe path segment)."""
    return COMPONENT_ID_PATTERN.fullmatch(component_id) is not None


@dataclass(frozen=True)
class Workspace:
    """An ephemeral build directory owned by exactly one pipeline run."""
    component_id: str
    root: Path

    @property
    def src_dir(self) -> Path:
        return self.root / SRC_DIR

    @property
    def dist_dir(self) -> Path:
        return self.root / DIST_DIR


class WorkspaceManager:
    """Allocates, seeds, and destroys per-build workspaces."""

    def __init__(self, base_dir: Path, template_dir: Path):
        self._base_dir = Path(base_dir)
        self._template_dir = Path(template_dir)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    @property
    def template_dir(self) -> Path:
        return self._template_dir

    def create(self, component_id: str) -> Workspace:
        """
        Create a workspace seeded from the template skeleton.

        Raises:
            WorkspaceError: On any filesystem failure; nothing is left behind
        """
        if not is_safe_component_id(component_id):
            raise WorkspaceError(f"Unsafe component id for workspace path: {component_id!r}")

        suffix = uuid.uuid4().hex[:SUFFIX_LENGTH]
        staging = self._base_dir / f"{STAGING_PREFIX}{suffix}"
        workspace = Workspace(
            component_id=component_id,
            root=self._base_dir / f"{component_id}-{suffix}",
        )

        logger.info(
            f"workspace_create component_id={component_id} path={workspace.root}",
            extra={"component_id": component_id},
        )

        try:
            self._base_dir.mkdir(parents=True, exist_ok=True)
            shutil.copytree(self._template_dir, staging, symlinks=True)
        except OSError as e:
            shutil.rmtree(staging, ignore_errors=True)
            raise WorkspaceError(f"Failed to copy templates: {e}") from e

        try:
            if workspace.root.exists():
                raise FileExistsError(f"Workspace path already exists: {workspace.root}")
            os.rename(staging, workspace.root)
        except OSError as e:
            shutil.rmtree(staging, ignore_errors=True)
            raise WorkspaceError(f"Failed to rename templates directory: {e}") from e

        try:
            workspace.src_dir.mkdir(parents=True, exist_ok=True)
            workspace.dist_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            shutil.rmtree(workspace.root, ignore_errors=True)
            raise WorkspaceError(f"Failed to create workspace directories: {e}") from e

        globals_source = workspace.root / GLOBALS_CSS
        globals_dest = workspace.src_dir / GLOBALS_CSS
        try:
            shutil.copyfile(globals_source, globals_dest)
        except OSError as e:
            shutil.rmtree(workspace.root, ignore_errors=True)
            raise WorkspaceError(f"Failed to copy {GLOBALS_CSS}: {e}") from e

        logger.info(
            f"workspace_created component_id={component_id}",
            extra={"component_id": component_id},
        )
        return workspace

    def teardown(self, workspace: Workspace) -> bool:
        """
        Remove the whole workspace tree.

        Never raises. Returns False if removal failed (the failure is logged).
        """
        try:
            shutil.rmtree(workspace.root)
        except FileNotFoundError:
            return True
        except OSError as e:
            error = CleanupError(f"Failed to cleanup workspace {workspace.root}: {e}")
            metrics.inc("cleanup_failures_total")
            logger.error(
                f"workspace_cleanup_failed component_id={workspace.component_id} error={error}",
                extra={"component_id": workspace.component_id},
            )
            return False

        logger.info(
            f"workspace_cleaned component_id={workspace.component_id}",
            extra={"component_id": workspace.component_id},
        )
        return True

    @contextmanager
    def acquire(self, component_id: str) -> Iterator[Workspace]:
        """Create a workspace and tear it down on exit, whatever happens inside."""
        workspace = self.create(component_id)
        try:
            yield workspace
        finally:
            self.teardown(workspace)

    def cleanup_stale(self, max_age_hours: Optional[float] = None) -> int:
        """
        Remove workspaces older than the retention period.

        Only directories named like our workspaces are touched, since the
        base dir is usually shared (/tmp).
        """
        hours = WORKSPACE_RETENTION_HOURS if max_age_hours is None else max_age_hours
        cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
        deleted = 0

        try:
            entries = list(self._base_dir.iterdir())
        except FileNotFoundError:
            return 0
        except OSError as e:
            logger.warning(f"cleanup_workspaces_failed error={type(e).__name__}")
            return 0

        for item in entries:
            if not WORKSPACE_NAME_PATTERN.fullmatch(item.name):
                continue
            # Entries can vanish or turn unreadable mid-sweep; skip only that one
            try:
                if not item.is_dir():
                    continue
                mtime = datetime.fromtimestamp(item.stat().st_mtime, tz=timezone.utc)
            except OSError as e:
                logger.warning(f"cleanup_workspace_skipped name={item.name} error={type(e).__name__}")
                continue
            if mtime < cutoff:
                shutil.rmtree(item, ignore_errors=True)
                deleted += 1

        if deleted > 0:
            logger.info(f"cleanup_workspaces deleted={deleted}")
        return deleted
