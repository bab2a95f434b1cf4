"""
Error taxonomy for the build service.

Every stage raises one of these; the API layer maps them to HTTP responses:
- ConfigurationError: startup-fatal, never raised per request
- InputError: 400
- WorkspaceError, BuildToolError, PublishError: 500
- CleanupError: logged only, never surfaces in a response
"""
from typing import Optional


class NimbusError(Exception):
    """Base class for all build service errors."""
    pass


class ConfigurationError(NimbusError):
    """A required setting is missing or malformed."""
    pass


class InputError(NimbusError):
    """Request body is malformed or does not match the schema."""
    pass


class WorkspaceError(NimbusError):
    """Workspace seeding, creation or write failed."""
    pass


class BuildToolError(NimbusError):
    """An external build tool exited with a non-zero status."""

    def __init__(self, tool: str, exit_code: int, stderr: str):
        self.tool = tool
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"{tool} failed (exit code {exit_code}): {stderr}")


class PublishError(NimbusError):
    """Uploading an artifact to object storage failed."""

    def __init__(self, message: str, key: Optional[str] = None):
        self.key = key
        super().__init__(message)


class CleanupError(NimbusError):
    """Workspace removal failed. Reported, never raised to callers."""
    pass
