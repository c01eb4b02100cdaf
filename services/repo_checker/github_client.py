"""GitHub REST client used to detect pushed team repositories."""
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class GitHubError(Exception):
    """GitHub answered with an unexpected status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"GitHub API error {status_code}: {message}")
        self.status_code = status_code


class GitHubClient:
    """Async GitHub client; only the two calls the checker needs."""

    def __init__(
        self,
        base_url: str = "https://api.github.com",
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "meme-war-repo-checker",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport
        )

    async def repo_exists(self, owner: str, repo: str) -> bool:
        response = await self.client.get(f"/repos/{owner}/{repo}")
        if response.status_code == 404:
            return False
        if response.status_code != 200:
            raise GitHubError(response.status_code, response.text)
        return True

    async def has_commits(self, owner: str, repo: str) -> bool:
        """True when the default branch has at least one commit."""
        response = await self.client.get(
            f"/repos/{owner}/{repo}/commits",
            params={"per_page": 1}
        )
        # 409 Conflict: "Git Repository is empty."
        if response.status_code in (404, 409):
            return False
        if response.status_code != 200:
            raise GitHubError(response.status_code, response.text)
        return len(response.json()) > 0

    async def close(self):
        await self.client.aclose()
