"""Content store: committed files in a GitHub repository.

The published site is a static repo. Publishing writes the rendered page
and the release record through the GitHub contents API (create or update,
base64 content, commit message). A failed write aborts the publish.
"""

import base64
import logging
from abc import ABC, abstractmethod

import httpx

from presswire.core.config import Settings
from presswire.core.errors import UpstreamError, UpstreamTimeoutError

logger = logging.getLogger(__name__)

_GITHUB_API_URL = "https://api.github.com"


class ContentStore(ABC):
    """put_file(path, content, message) collaborator."""

    @abstractmethod
    async def put_file(self, path: str, content: str, message: str) -> None:
        """Create or replace a file.

        Raises:
            UpstreamError: The store rejected the write.
            UpstreamTimeoutError: The store did not answer in time.
        """
        ...


class InMemoryContentStore(ContentStore):
    """Keeps files in a dict (development and tests)."""

    def __init__(self) -> None:
        self.files: dict[str, str] = {}
        self.commits: list[str] = []

    async def put_file(self, path: str, content: str, message: str) -> None:
        self.files[path] = content
        self.commits.append(message)


class GitHubContentStore(ContentStore):
    """Writes files through the GitHub contents API.

    Args:
        settings: Application settings (token, owner, repo, branch, timeout).
        transport: Optional httpx transport (tests inject a MockTransport).
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def _url(self, path: str) -> str:
        return (
            f"{_GITHUB_API_URL}/repos/{self._settings.github_owner}/"
            f"{self._settings.github_repo}/contents/{path}"
        )

    async def put_file(self, path: str, content: str, message: str) -> None:
        headers = {
            "Authorization": f"Bearer {self._settings.github_token.get_secret_value()}",
            "Accept": "application/vnd.github+json",
        }
        body = {
            "message": message,
            "content": base64.b64encode(content.encode()).decode(),
            "branch": self._settings.github_branch,
        }
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self._settings.content_store_timeout_seconds,
            ) as client:
                # Updating an existing file requires its blob sha
                existing = await client.get(
                    self._url(path),
                    headers=headers,
                    params={"ref": self._settings.github_branch},
                )
                if existing.status_code == 200:
                    body["sha"] = existing.json().get("sha")
                resp = await client.put(self._url(path), headers=headers, json=body)
                resp.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.error("GitHub write timed out for %s", path)
            raise UpstreamTimeoutError("Publishing timed out, please retry") from exc
        except httpx.HTTPError as exc:
            logger.error("GitHub write failed for %s: %s", path, type(exc).__name__)
            raise UpstreamError("Failed to publish press release") from exc
        logger.info("Committed %s", path)
