"""
GitHub Sources

Thin wrappers over the GitHub REST API for the two upstream inputs: release
metadata of the core project, and commit/tree metadata of the rules
repository. Failures become `None` so callers can fall back to the previous
persisted state.
"""

from typing import Any, Dict, List, Optional

import requests  # type: ignore[import-untyped]

from manifestor.constants import GITHUB_API_BASE, RELEASE_SCAN_COUNT
from manifestor.log_utils import logger
from manifestor.utils import fetch_json_with_retry, make_github_api_request

from .interfaces import Asset, Release
from .rules import format_commit_time, paths_from_tree


def create_release_from_github_data(release_data: Any) -> Optional[Release]:
    """
    Create a Release object from GitHub API release data.

    Malformed assets are skipped individually; a release without a usable tag
    yields `None`. A release whose assets are all unusable is still returned,
    since an empty channel is a valid result.
    """
    if not isinstance(release_data, dict):
        return None
    tag_name = release_data.get("tag_name")
    if not isinstance(tag_name, str) or not tag_name.strip():
        logger.warning("Skipping release with missing or invalid tag_name")
        return None

    release = Release(
        tag_name=tag_name,
        prerelease=bool(release_data.get("prerelease", False)),
        published_at=release_data.get("published_at"),
    )

    assets_data = release_data.get("assets")
    if not isinstance(assets_data, list):
        logger.warning("Release %s has no valid assets field", tag_name)
        return release

    for asset_data in assets_data:
        if not isinstance(asset_data, dict):
            logger.warning("Skipping malformed asset for release %s", tag_name)
            continue
        asset_name = asset_data.get("name")
        download_url = asset_data.get("browser_download_url")
        if not isinstance(asset_name, str) or not asset_name.strip():
            logger.warning("Skipping asset with invalid name for release %s", tag_name)
            continue
        if not isinstance(download_url, str) or not download_url:
            logger.warning(
                "Skipping asset %s without download URL for release %s",
                asset_name,
                tag_name,
            )
            continue
        try:
            size = int(asset_data.get("size") or 0)
        except (TypeError, ValueError):
            size = 0
        release.assets.append(Asset(name=asset_name, download_url=download_url, size=size))

    return release


class GithubReleaseSource:
    """
    Release lookups for one upstream repository.

    Usage:
        source = GithubReleaseSource("SagerNet/sing-box", github_token=token)
        stable = source.get_latest_release()
        alpha = source.find_latest_prerelease()
    """

    def __init__(self, repo: str, github_token: Optional[str] = None):
        self.repo = repo
        self.github_token = github_token
        self.releases_url = f"{GITHUB_API_BASE}/{repo}/releases"

    def _fetch(self, url: str, params: Optional[Dict[str, Any]] = None) -> Optional[Any]:
        try:
            response = make_github_api_request(url, self.github_token, params=params)
            return response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning(f"Fetch warning for {url}: {exc}")
            return None

    def get_latest_release(self) -> Optional[Release]:
        """Return the latest stable release, or `None` if it cannot be retrieved."""
        return create_release_from_github_data(self._fetch(f"{self.releases_url}/latest"))

    def get_recent_releases(self, limit: int = RELEASE_SCAN_COUNT) -> List[Release]:
        """Return up to `limit` most recent releases, newest first."""
        data = self._fetch(self.releases_url, params={"per_page": limit})
        if not isinstance(data, list):
            return []
        releases = []
        for release_data in data:
            release = create_release_from_github_data(release_data)
            if release is not None:
                releases.append(release)
        return releases

    def find_latest_prerelease(self, limit: int = RELEASE_SCAN_COUNT) -> Optional[Release]:
        """Return the newest prerelease among the recent releases."""
        for release in self.get_recent_releases(limit):
            if release.prerelease:
                return release
        return None

    def get_release_by_tag(self, tag: str) -> Optional[Release]:
        """Return the release for `tag`, or `None`."""
        return create_release_from_github_data(
            self._fetch(f"{self.releases_url}/tags/{tag}")
        )


class GithubTreeSource:
    """
    Commit and file-tree lookups for one branch of a repository.

    Both lookups use the bounded retry policy of `fetch_json_with_retry` and
    return `None` when no data could be obtained.
    """

    def __init__(self, repo: str, branch: str, github_token: Optional[str] = None):
        self.repo = repo
        self.branch = branch
        self.github_token = github_token

    def get_version(self) -> Optional[str]:
        """Return the branch head's committer timestamp as a compact version token."""
        url = f"{GITHUB_API_BASE}/{self.repo}/commits/{self.branch}"
        data = fetch_json_with_retry(url, self.github_token)
        try:
            committed_at = data["commit"]["committer"]["date"]
        except (KeyError, TypeError):
            if data is not None:
                logger.warning(f"Unexpected commit payload from {url}")
            return None
        if not isinstance(committed_at, str):
            return None
        return format_commit_time(committed_at)

    def get_paths(self) -> Optional[List[str]]:
        """Return all blob paths of the branch, or `None` if the tree is unavailable."""
        url = f"{GITHUB_API_BASE}/{self.repo}/git/trees/{self.branch}"
        data = fetch_json_with_retry(url, self.github_token, params={"recursive": 1})
        if not isinstance(data, dict) or not isinstance(data.get("tree"), list):
            if data is not None:
                logger.warning(f"Unexpected tree payload from {url}")
            return None
        if data.get("truncated"):
            logger.warning(f"Tree listing for {self.repo}@{self.branch} is truncated")
        return paths_from_tree(data["tree"])
