"""Tests for the aio-backed remote mesh service."""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from appbuilder_mesh.deploy.remote import (
    AioMeshService,
    PollError,
    SubmitError,
    compose_status_command,
    compose_update_command,
)
from appbuilder_mesh.types import Environment


def completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> MagicMock:
    """Create a fake CompletedProcess."""
    result = MagicMock()
    result.returncode = returncode
    result.stdout = stdout
    result.stderr = stderr
    return result


class TestComposeCommands:
    """Tests for command composition."""

    def test_update_staging(self) -> None:
        """Staging updates should not bypass the cache."""
        cmd = compose_update_command("aio", Path("mesh.json"), Environment.STAGING)
        assert cmd == ["aio", "api-mesh:update", "mesh.json", "--autoConfirmAction"]

    def test_update_production(self) -> None:
        """Production updates should add --ignoreCache."""
        cmd = compose_update_command("aio", Path("mesh.json"), Environment.PRODUCTION)
        assert cmd[-1] == "--ignoreCache"
        assert "--autoConfirmAction" in cmd

    def test_status(self) -> None:
        """Status uses api-mesh:status."""
        assert compose_status_command("/usr/bin/aio") == ["/usr/bin/aio", "api-mesh:status"]


class TestSubmitUpdate:
    """Tests for AioMeshService.submit_update."""

    def test_success(self, tmp_path: Path) -> None:
        """A zero exit should return normally."""
        service = AioMeshService(tmp_path / "mesh.json", cwd=tmp_path)
        with patch("subprocess.run", return_value=completed(stdout="ok")) as mock_run:
            service.submit_update()

        args, kwargs = mock_run.call_args
        assert args[0][:2] == ["aio", "api-mesh:update"]
        assert kwargs["cwd"] == tmp_path
        assert kwargs["timeout"] == 600

    def test_nonzero_exit(self, tmp_path: Path) -> None:
        """A non-zero exit should raise SubmitError with stderr."""
        service = AioMeshService(tmp_path / "mesh.json")
        with (
            patch("subprocess.run", return_value=completed(1, stderr="Not logged in")),
            pytest.raises(SubmitError, match="Not logged in") as exc_info,
        ):
            service.submit_update()
        assert exc_info.value.exit_code == 1
        assert exc_info.value.code == "submit_error"

    def test_timeout(self, tmp_path: Path) -> None:
        """A timeout should raise SubmitError with submit_timeout code."""
        service = AioMeshService(tmp_path / "mesh.json", submit_timeout=5)
        with (
            patch(
                "subprocess.run",
                side_effect=subprocess.TimeoutExpired(cmd="aio", timeout=5),
            ),
            pytest.raises(SubmitError) as exc_info,
        ):
            service.submit_update()
        assert exc_info.value.code == "submit_timeout"

    def test_missing_executable(self, tmp_path: Path) -> None:
        """A missing aio binary should raise SubmitError."""
        service = AioMeshService(tmp_path / "mesh.json", aio_command="no-such-aio")
        with (
            patch("subprocess.run", side_effect=FileNotFoundError("no-such-aio")),
            pytest.raises(SubmitError) as exc_info,
        ):
            service.submit_update()
        assert exc_info.value.code == "execution_error"


class TestCheckStatus:
    """Tests for AioMeshService.check_status."""

    def test_returns_text(self, tmp_path: Path) -> None:
        """Status output should be returned as text."""
        service = AioMeshService(tmp_path / "mesh.json")
        with patch(
            "subprocess.run",
            return_value=completed(stdout="Mesh provisioned successfully.\n"),
        ):
            assert service.check_status() == "Mesh provisioned successfully."

    def test_nonzero_exit(self, tmp_path: Path) -> None:
        """A non-zero exit should raise PollError."""
        service = AioMeshService(tmp_path / "mesh.json")
        with (
            patch("subprocess.run", return_value=completed(2, stdout="")),
            pytest.raises(PollError, match="exit code 2"),
        ):
            service.check_status()

    def test_timeout(self, tmp_path: Path) -> None:
        """A timeout should raise PollError with poll_timeout code."""
        service = AioMeshService(tmp_path / "mesh.json")
        with (
            patch(
                "subprocess.run",
                side_effect=subprocess.TimeoutExpired(cmd="aio", timeout=120),
            ),
            pytest.raises(PollError) as exc_info,
        ):
            service.check_status()
        assert exc_info.value.code == "poll_timeout"
