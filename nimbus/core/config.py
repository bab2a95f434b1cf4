"""
Service configuration from environment variables.

Loaded once at process start and passed by reference into the pipeline.
Missing required settings raise ConfigurationError, which is fatal at startup.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from nimbus.core.errors import ConfigurationError

DEFAULT_PREVIEW_DOMAIN = "preview.runney.cloud"
DEFAULT_WORKSPACE_ROOT = "/tmp"
DEFAULT_BUN_PATH = "/usr/local/bin/bun"

REQUIRED_VARS = ("S3_BUCKET_NAME", "CLOUDFRONT_DOMAIN", "AWS_REGION", "LAMBDA_TASK_ROOT")


@dataclass(frozen=True)
class NimbusConfig:
    """Build service configuration (immutable)."""
    bucket_name: str
    cdn_domain: str
    region: str
    template_dir: Path
    preview_domain: str = DEFAULT_PREVIEW_DOMAIN
    workspace_root: Path = Path(DEFAULT_WORKSPACE_ROOT)
    bun_path: str = DEFAULT_BUN_PATH
    tool_timeout_s: Optional[int] = None
    log_level: str = "INFO"

    def render_url(self, component_id: str) -> str:
        """Public preview URL served from the component's own subdomain."""
        return f"https://{component_id}.{self.preview_domain}/index.html"

    def original_url(self, component_id: str) -> str:
        """Direct CDN URL for the published entry document."""
        return f"https://{self.cdn_domain}/{component_id}/index.html"


def _parse_timeout(raw: Optional[str]) -> Optional[int]:
    if raw is None or raw.strip() == "":
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"NIMBUS_TOOL_TIMEOUT_S must be an integer, got {raw!r}")
    if value <= 0:
        raise ConfigurationError("NIMBUS_TOOL_TIMEOUT_S must be positive")
    return value


def load_config(environ: Optional[Mapping[str, str]] = None) -> NimbusConfig:
    """
    Load configuration from environment.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Raises:
        ConfigurationError: If a required variable is missing or a value is malformed
    """
    env = os.environ if environ is None else environ

    missing = [name for name in REQUIRED_VARS if not env.get(name, "").strip()]
    if missing:
        raise ConfigurationError(f"{', '.join(missing)} not set")

    template_dir = env.get("NIMBUS_TEMPLATE_DIR") or str(
        Path(env["LAMBDA_TASK_ROOT"]) / "templates"
    )

    return NimbusConfig(
        bucket_name=env["S3_BUCKET_NAME"].strip(),
        cdn_domain=env["CLOUDFRONT_DOMAIN"].strip().rstrip("/"),
        region=env["AWS_REGION"].strip(),
        template_dir=Path(template_dir),
        preview_domain=env.get("NIMBUS_PREVIEW_DOMAIN") or DEFAULT_PREVIEW_DOMAIN,
        workspace_root=Path(env.get("NIMBUS_WORKSPACE_ROOT") or DEFAULT_WORKSPACE_ROOT),
        bun_path=env.get("NIMBUS_BUN_PATH") or DEFAULT_BUN_PATH,
        tool_timeout_s=_parse_timeout(env.get("NIMBUS_TOOL_TIMEOUT_S")),
        log_level=env.get("LOG_LEVEL") or "INFO",
    )
