"""
Repo checker worker.

Polls GitHub for every team that has not pushed yet and, once the team
repository has a commit, sets the team's pushed flag and points its URL at
the GitHub Pages site. Flags are only ever set, never cleared.
"""

import asyncio
import logging
import signal
import sys
from datetime import datetime
from typing import Callable, Optional

import httpx
from prometheus_client import Counter, start_http_server

from ..shared.database import PostgresStore
from ..shared.models import Stage, Team, utcnow
from ..shared.store import VoteStore
from .config import Config
from .github_client import GitHubClient, GitHubError

logger = logging.getLogger(__name__)

# Prometheus metrics
repos_checked = Counter(
    'repo_checks_total',
    'Total number of team repositories checked',
    ['result']
)

teams_marked_pushed = Counter(
    'teams_marked_pushed_total',
    'Total number of teams flagged as pushed'
)

github_errors = Counter(
    'github_errors_total',
    'Total number of GitHub API errors',
    ['error_type']
)


def live_page_url(owner: str, repo: str) -> str:
    return f"https://{owner}.github.io/{repo}/"


class RepoChecker:
    """Periodic GitHub poller."""

    def __init__(
        self,
        store: VoteStore,
        github: GitHubClient,
        interval: float = 120,
        clock: Callable[[], datetime] = utcnow
    ):
        self.store = store
        self.github = github
        self.interval = interval
        self.clock = clock
        self.shutdown_requested = False
        self._wakeup: Optional[asyncio.Event] = None

    def request_shutdown(self, signum=None, frame=None):
        """Handle graceful shutdown on SIGTERM/SIGINT."""
        logger.info(f"Shutdown signal received: {signum}")
        self.shutdown_requested = True
        if self._wakeup is not None:
            self._wakeup.set()

    async def check_team(self, team: Team) -> bool:
        """
        Check one team repository.

        Returns:
            bool: True if the team was marked as pushed
        """
        if team.git_stages.pushed:
            repos_checked.labels(result="already_pushed").inc()
            return False
        if not team.github_username or not team.repo_name:
            logger.info(f"Skipping team {team.name!r}: missing githubUsername or repoName")
            repos_checked.labels(result="incomplete").inc()
            return False

        owner, repo = team.github_username, team.repo_name
        if not await self.github.repo_exists(owner, repo):
            logger.info(f"Team {team.name!r}: repo {owner}/{repo} not found")
            repos_checked.labels(result="missing").inc()
            return False

        if not await self.github.has_commits(owner, repo):
            logger.info(f"Team {team.name!r}: repo {owner}/{repo} has no commits yet")
            repos_checked.labels(result="empty").inc()
            return False

        url = live_page_url(owner, repo)
        await self.store.mark_stage(team.id, Stage.PUSHED, self.clock(), live_url=url)
        repos_checked.labels(result="pushed").inc()
        teams_marked_pushed.inc()
        logger.info(f"Team {team.name!r} pushed, live at {url}")
        return True

    async def run_once(self) -> int:
        """
        Check every team once.

        Returns:
            int: Number of teams newly marked as pushed
        """
        teams = await self.store.list_teams()
        logger.info(f"Checking {len(teams)} team repositories")

        updated = 0
        for team in teams:
            try:
                if await self.check_team(team):
                    updated += 1
            except GitHubError as e:
                github_errors.labels(error_type=str(e.status_code)).inc()
                logger.error(f"GitHub API error for team {team.name!r}: {e}")
            except httpx.HTTPError as e:
                github_errors.labels(error_type="transport").inc()
                logger.error(f"GitHub request failed for team {team.name!r}: {e}")
            except Exception as e:
                repos_checked.labels(result="error").inc()
                logger.error(f"Failed to check team {team.name!r}: {e}", exc_info=True)

        logger.info(f"Finished. Updated {updated} teams.")
        return updated

    async def run(self):
        """Poll until a shutdown is requested."""
        self._wakeup = asyncio.Event()
        while not self.shutdown_requested:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Critical error during repo check: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass


async def serve():
    store = PostgresStore(
        Config.get_postgres_dsn(),
        min_size=Config.POSTGRES_MIN_POOL_SIZE,
        max_size=Config.POSTGRES_MAX_POOL_SIZE
    )
    github = GitHubClient(Config.GITHUB_API_URL, token=Config.GITHUB_TOKEN, timeout=Config.GITHUB_TIMEOUT)
    checker = RepoChecker(store, github, interval=Config.CHECK_INTERVAL_SECONDS)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, checker.request_shutdown, sig)

    await store.initialize()
    try:
        await checker.run()
    finally:
        logger.info("Cleaning up resources...")
        await github.close()
        await store.close()
        logger.info("Cleanup complete. Repo checker shutting down.")


def main():
    """Main entry point."""
    logging.basicConfig(
        level=getattr(logging, Config.LOG_LEVEL, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    logger.info("=" * 60)
    logger.info("Starting Repo Checker")
    logger.info(f"GitHub API: {Config.GITHUB_API_URL}")
    logger.info(f"PostgreSQL: {Config.POSTGRES_HOST}:{Config.POSTGRES_PORT}")
    logger.info(f"Interval: {Config.CHECK_INTERVAL_SECONDS}s")
    logger.info("=" * 60)

    if not Config.GITHUB_TOKEN:
        logger.warning("GITHUB_TOKEN is not set; unauthenticated requests are heavily rate limited")

    logger.info(f"Starting Prometheus metrics server on port {Config.METRICS_PORT}")
    start_http_server(Config.METRICS_PORT)

    asyncio.run(serve())


if __name__ == '__main__':
    main()
