from __future__ import annotations

from pathlib import Path

from pubflow.core.result import Err, Ok, Result
from pubflow.platform.process import run as run_process
from pubflow.publish.errors import PublishError
from pubflow.publish.timeouts import NPM_VIEW_TIMEOUT_SECONDS

_NOT_PUBLISHED_MARKERS = ("e404", "404 not found", "is not in this registry")


class NpmRegistry:
    """ArtifactRegistry backed by ``npm view``, honoring the project's .npmrc."""

    def __init__(self, repo_root: Path) -> None:
        self._root = repo_root

    def published_version(self, package_name: str) -> Result[str | None, PublishError]:
        result = run_process(
            ["npm", "view", package_name, "version"],
            cwd=self._root,
            timeout=NPM_VIEW_TIMEOUT_SECONDS,
        )
        if isinstance(result, Ok):
            return Ok(result.value.strip() or None)

        error = result.error
        if any(marker in error.output.lower() for marker in _NOT_PUBLISHED_MARKERS):
            return Ok(None)
        return Err(
            PublishError(
                kind="registry_failed",
                message=f"failed to query the registry for {package_name}",
                hint=error.output or None,
            )
        )
