"""Repository allowlist -- restricts which GitHub sources tools may target."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

logger = logging.getLogger(__name__)

_SOURCE_RE = re.compile(r"^sources/github/(.+)$")


class RepositoryAccessError(ValueError):
    """The requested source is malformed or not on the allowlist."""


class RepositoryValidator:
    """Checks ``sources/github/<owner>/<repo>`` names against an allowlist.

    An empty allowlist allows every repository.
    """

    def __init__(self, allowed: Iterable[str] = ()) -> None:
        self._allowed: tuple[str, ...] = tuple(sorted({r.strip() for r in allowed if r.strip()}))
        if self._allowed:
            logger.info("Repository allowlist active: %s", ", ".join(self._allowed))

    @property
    def enabled(self) -> bool:
        return bool(self._allowed)

    @property
    def allowed_repositories(self) -> tuple[str, ...]:
        return self._allowed

    def validate(self, source: str) -> None:
        if not self._allowed:
            return

        match = _SOURCE_RE.match(source)
        if not match:
            raise RepositoryAccessError(
                f"Invalid source format: {source}. Expected sources/github/owner/repo"
            )

        repo_path = match.group(1)
        if repo_path not in self._allowed:
            raise RepositoryAccessError(
                f'Repository "{repo_path}" is not in the allowed repositories list. '
                f"Allowed: {', '.join(self._allowed)}. "
                "Set JULES_ALLOWED_REPOS environment variable to modify this list."
            )
