"""
Pytest configuration and fixtures.
"""
import os
import sys
import tempfile
from pathlib import Path

# Set test environment before importing app
REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
os.environ["S3_BUCKET_NAME"] = "test-bucket"
os.environ["CLOUDFRONT_DOMAIN"] = "d111111abcdef8.cloudfront.net"
os.environ["AWS_REGION"] = "us-east-1"
os.environ["LAMBDA_TASK_ROOT"] = REPO_ROOT
os.environ["NIMBUS_WORKSPACE_ROOT"] = tempfile.mkdtemp(prefix="nimbus-test-")

import pytest
from fastapi.testclient import TestClient

# Add parent directory to path
sys.path.insert(0, REPO_ROOT)

from main import create_app
from nimbus.core.config import NimbusConfig
from nimbus.core.object_store import StorageError
from nimbus.core.pipeline import Pipeline
from nimbus.core.tool_runner import CommandResult


class FakeToolRunner:
    """
    Scripted stand-in for SubprocessToolRunner.

    Successful runs write the file the real tool would have produced.
    Failures are scripted per bun subcommand ("build" or "x").
    """

    def __init__(self):
        self.calls: list[tuple[list[str], Path]] = []
        self._failures: dict[str, tuple[int, str]] = {}

    def fail(self, subcommand: str, exit_code: int = 1, stderr: str = "") -> None:
        self._failures[subcommand] = (exit_code, stderr)

    @property
    def subcommands(self) -> list[str]:
        return [cmd[1] for cmd, _ in self.calls]

    def run(self, cmd: list[str], cwd: Path) -> CommandResult:
        self.calls.append((cmd, cwd))
        subcommand = cmd[1]

        if subcommand in self._failures:
            exit_code, stderr = self._failures[subcommand]
            return CommandResult(command=cmd, exit_code=exit_code, stdout="", stderr=stderr, duration_ms=1)

        if subcommand == "build":
            outdir = Path(cwd) / cmd[cmd.index("--outdir") + 1]
            (outdir / "index.js").write_text("console.log('bundle');\n")
        elif subcommand == "x":
            Path(cmd[cmd.index("-o") + 1]).write_text("*,::before{box-sizing:border-box}\n")

        return CommandResult(command=cmd, exit_code=0, stdout="", stderr="", duration_ms=1)


class FakeObjectStore:
    """In-memory object store; can be told to reject specific keys."""

    def __init__(self):
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.attempts: list[str] = []
        self.fail_keys: set[str] = set()

    def put_object(self, key: str, data: bytes, content_type: str) -> None:
        self.attempts.append(key)
        if key in self.fail_keys:
            raise StorageError(f"AccessDenied for {key}")
        self.objects[key] = (data, content_type)


@pytest.fixture
def template_dir(tmp_path):
    """A minimal template skeleton."""
    root = tmp_path / "templates"
    root.mkdir()
    (root / "globals.css").write_text("@tailwind base;\n@tailwind components;\n@tailwind utilities;\n")
    (root / "tailwind.config.js").write_text("module.exports = { content: ['./src/**/*.tsx'] };\n")
    (root / "package.json").write_text('{"name": "template", "private": true}\n')
    (root / "node_modules").mkdir()
    return root


@pytest.fixture
def workspace_root(tmp_path):
    root = tmp_path / "workspaces"
    root.mkdir()
    return root


@pytest.fixture
def config(template_dir, workspace_root):
    """Synthetic configuration; nothing read from the environment."""
    return NimbusConfig(
        bucket_name="test-bucket",
        cdn_domain="cdn.example.test",
        region="us-east-1",
        template_dir=template_dir,
        preview_domain="preview.example.test",
        workspace_root=workspace_root,
        bun_path="/usr/local/bin/bun",
    )


@pytest.fixture
def tool_runner():
    return FakeToolRunner()


@pytest.fixture
def object_store():
    return FakeObjectStore()


@pytest.fixture
def pipeline(config, tool_runner, object_store):
    return Pipeline(config=config, tool_runner=tool_runner, object_store=object_store)


@pytest.fixture
def client(config, tool_runner, object_store):
    """Create a test client wired to the fakes."""
    app = create_app(config=config, tool_runner=tool_runner, object_store=object_store)
    return TestClient(app, raise_server_exceptions=False)
