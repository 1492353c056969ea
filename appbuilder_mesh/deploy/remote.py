"""Remote mesh service backed by the Adobe I/O CLI.

This module handles:
- Composing `aio api-mesh:update` and `aio api-mesh:status` commands
- Executing them with subprocess and per-command timeouts
- Mapping failures to SubmitError / PollError

The deployment state machine depends only on the RemoteMeshService
protocol, so tests can drive it with a fake service.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path
from typing import Protocol

from appbuilder_mesh.deploy.status import extract_status_text
from appbuilder_mesh.types import Environment

logger = logging.getLogger(__name__)


class SubmitError(Exception):
    """Raised when the mesh update command fails."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        code: str = "submit_error",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.code = code


class PollError(Exception):
    """Raised when a status check fails transiently."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        code: str = "poll_error",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.code = code


class RemoteMeshService(Protocol):
    """Operations the deployment state machine needs from the remote side."""

    def submit_update(self) -> None:
        """Submit the mesh update. Raises SubmitError on failure."""
        ...

    def check_status(self) -> str:
        """Return the current status text. Raises PollError on failure."""
        ...


def compose_update_command(
    aio_command: str,
    mesh_path: Path,
    environment: Environment,
) -> list[str]:
    """Compose the `aio api-mesh:update` command.

    Args:
        aio_command: aio executable.
        mesh_path: Compiled mesh.json.
        environment: Target environment.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    cmd = [aio_command, "api-mesh:update", str(mesh_path), "--autoConfirmAction"]
    if environment == Environment.PRODUCTION:
        cmd.append("--ignoreCache")
    return cmd


def compose_status_command(aio_command: str) -> list[str]:
    """Compose the `aio api-mesh:status` command."""
    return [aio_command, "api-mesh:status"]


def _error_text(result: subprocess.CompletedProcess[str]) -> str:
    return (result.stderr or result.stdout or "").strip() or (
        f"exit code {result.returncode}"
    )


class AioMeshService:
    """RemoteMeshService implementation that shells out to aio.

    Attributes:
        mesh_path: Compiled mesh.json to submit.
        environment: Target environment.
        aio_command: aio executable.
        cwd: Working directory for aio (the App Builder project).
        submit_timeout: Timeout for the update command in seconds.
        status_timeout: Timeout for the status command in seconds.
    """

    def __init__(
        self,
        mesh_path: Path,
        environment: Environment = Environment.STAGING,
        aio_command: str = "aio",
        cwd: Path | None = None,
        submit_timeout: int = 600,
        status_timeout: int = 120,
    ) -> None:
        self.mesh_path = mesh_path
        self.environment = environment
        self.aio_command = aio_command
        self.cwd = cwd
        self.submit_timeout = submit_timeout
        self.status_timeout = status_timeout

    def submit_update(self) -> None:
        """Run `aio api-mesh:update`.

        Raises:
            SubmitError: If the command cannot start, times out or exits
                non-zero.
        """
        cmd = compose_update_command(self.aio_command, self.mesh_path, self.environment)
        logger.info("Submitting mesh update: %s", shlex.join(cmd))

        try:
            result = subprocess.run(
                cmd,
                cwd=self.cwd,
                capture_output=True,
                text=True,
                timeout=self.submit_timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise SubmitError(
                f"Mesh update timed out after {self.submit_timeout}s",
                exit_code=-1,
                code="submit_timeout",
            ) from e
        except OSError as e:
            raise SubmitError(
                f"Failed to execute mesh update: {e}",
                code="execution_error",
            ) from e

        if result.returncode != 0:
            raise SubmitError(
                f"Mesh update failed: {_error_text(result)}",
                exit_code=result.returncode,
            )
        logger.debug("Mesh update output: %s", result.stdout.strip())

    def check_status(self) -> str:
        """Run `aio api-mesh:status` and return its status text.

        Raises:
            PollError: If the command cannot start, times out or exits
                non-zero.
        """
        cmd = compose_status_command(self.aio_command)

        try:
            result = subprocess.run(
                cmd,
                cwd=self.cwd,
                capture_output=True,
                text=True,
                timeout=self.status_timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise PollError(
                f"Status check timed out after {self.status_timeout}s",
                exit_code=-1,
                code="poll_timeout",
            ) from e
        except OSError as e:
            raise PollError(
                f"Failed to execute status check: {e}",
                code="execution_error",
            ) from e

        if result.returncode != 0:
            raise PollError(
                f"Status check failed: {_error_text(result)}",
                exit_code=result.returncode,
            )
        return extract_status_text(result.stdout)


__all__ = [
    "AioMeshService",
    "PollError",
    "RemoteMeshService",
    "SubmitError",
    "compose_status_command",
    "compose_update_command",
]
