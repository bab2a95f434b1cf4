"""
Artifact collection and publication.

Every file directly inside dist/ is an artifact. Each is uploaded under
<component_id>/<file name> with a content type derived from its extension.
There is no rollback: if an upload fails, earlier uploads from the same
build stay in the bucket.
"""
import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from nimbus.core.composer import HTML_OUTPUT
from nimbus.core.errors import PublishError, WorkspaceError
from nimbus.core.metrics import metrics
from nimbus.core.object_store import ObjectStore, StorageError

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "application/octet-stream"

MEDIA_TYPES = {
    ".css": "text/css",
    ".js": "application/javascript",
    ".html": "text/html",
}


def media_type_for(name: str) -> str:
    """Content type for a file name, by extension only."""
    return MEDIA_TYPES.get(PurePosixPath(name).suffix.lower(), DEFAULT_MEDIA_TYPE)


@dataclass(frozen=True)
class Artifact:
    """A produced output file."""
    relative_name: str
    data: bytes
    media_type: str

    @property
    def size(self) -> int:
        return len(self.data)


def storage_key(component_id: str, relative_name: str) -> str:
    return f"{component_id}/{relative_name}"


def collect_artifacts(dist_dir: Path) -> list[Artifact]:
    """
    Read every regular file in dist_dir (no recursion), sorted by name.

    Raises:
        WorkspaceError: If the directory or a file cannot be read
    """
    try:
        paths = sorted(p for p in Path(dist_dir).iterdir() if p.is_file())
        return [
            Artifact(
                relative_name=path.name,
                data=path.read_bytes(),
                media_type=media_type_for(path.name),
            )
            for path in paths
        ]
    except OSError as e:
        raise WorkspaceError(f"Failed to read build outputs: {e}") from e


class ArtifactPublisher:
    """Uploads a build's artifacts to object storage."""

    def __init__(self, store: ObjectStore):
        self._store = store

    def publish(self, component_id: str, artifacts: list[Artifact]) -> list[str]:
        """
        Upload artifacts; the HTML entry document goes last so it never
        points at assets that are not uploaded yet.

        Returns:
            Published keys, in upload order

        Raises:
            PublishError: On the first failed upload; later uploads are skipped
        """
        ordered = sorted(artifacts, key=lambda a: a.relative_name == HTML_OUTPUT)
        published = []

        for artifact in ordered:
            key = storage_key(component_id, artifact.relative_name)
            try:
                self._store.put_object(key, artifact.data, artifact.media_type)
            except StorageError as e:
                metrics.inc("publish_failures_total")
                logger.error(
                    f"upload_failed key={key} published={len(published)} error={e}",
                    extra={"component_id": component_id},
                )
                raise PublishError(f"Upload failed: {e}", key=key) from e

            metrics.inc("artifacts_published_total")
            published.append(key)
            logger.info(
                f"artifact_uploaded key={key} content_type={artifact.media_type} size={artifact.size}",
                extra={"component_id": component_id},
            )

        return published
