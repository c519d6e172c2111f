"""Client for release listings and release assets on GitHub.

The HTTP client is passed in by the caller and lives for one engine
invocation; tests hand in an httpx.Client backed by httpx.MockTransport.
Nothing is cached, and nothing is retried: a rate-limit response is
raised as RateLimitError so the caller decides whether to re-run.
"""

import logging
import os
import threading
from urllib.parse import quote, urlparse

import httpx

from catalog_cd import __version__
from catalog_cd.errors import (
    ConfigError,
    FetchCancelledError,
    NetworkError,
    NotFoundError,
    RateLimitError,
)
from catalog_cd.models.catalog import ReleaseRef
from catalog_cd.models.external import RepositorySpec

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT = 30.0
_PER_PAGE = 100
_JSON_HEADERS = {
    "Accept": "application/vnd.github+json",
    "X-GitHub-Api-Version": "2022-11-28",
}
_ASSET_HEADERS = {"Accept": "application/octet-stream"}


class CancelToken:
    """Cooperative cancellation flag shared by all fetch workers."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise FetchCancelledError("fetch cancelled")


def create_http_client(
    timeout: float = DEFAULT_TIMEOUT,
    token: str | None = None,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Build the HTTP client used for one run.

    token defaults to GITHUB_TOKEN, then GH_TOKEN. Anonymous access works
    for public repositories but has a much lower rate limit.
    """
    token = token or os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN")
    headers = {"User-Agent": f"catalog-cd/{__version__}"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.Client(
        headers=headers,
        timeout=httpx.Timeout(timeout),
        follow_redirects=True,
        transport=transport,
    )


def parse_repository_url(url: str) -> tuple[str, str, str]:
    """Split a repository URL into (api_base, owner, repo).

    https://github.com/<owner>/<repo> maps to api.github.com; any other host
    is treated as GitHub Enterprise with its API under /api/v3.
    """
    parsed = urlparse(url if "://" in url else f"https://{url}")
    parts = [p for p in parsed.path.split("/") if p]
    if not parsed.netloc or len(parts) < 2:
        raise ConfigError(f"Cannot parse repository url '{url}', expected https://<host>/<owner>/<repo>")
    owner, repo = parts[0], parts[1]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    host = parsed.netloc.lower()
    if host in ("github.com", "www.github.com"):
        api_base = GITHUB_API_URL
    else:
        api_base = f"{parsed.scheme or 'https'}://{parsed.netloc}/api/v3"
    return api_base, owner, repo


class RepositoryClient:
    """List releases and download release assets of external repositories."""

    def __init__(self, http: httpx.Client):
        self.http = http

    def list_releases(self, repo: RepositorySpec, cancel: CancelToken | None = None) -> list[ReleaseRef]:
        """Return the releases of repo in the order the API reports them.

        Follows Link: rel="next" pagination. Draft releases are skipped.
        """
        api_base, owner, name = parse_repository_url(repo.url)
        url = f"{api_base}/repos/{owner}/{name}/releases?per_page={_PER_PAGE}"

        releases: list[ReleaseRef] = []
        while url:
            response = self._get(url, _JSON_HEADERS, cancel)
            payload = self._json(response)
            if not isinstance(payload, list):
                raise NetworkError(f"unexpected release listing from {url}")
            for item in payload:
                if item.get("draft"):
                    continue
                tag = item.get("tag_name")
                if not tag:
                    continue
                releases.append(ReleaseRef(tag=tag, repository=repo))
            url = response.links.get("next", {}).get("url")

        logger.info("Found %d releases in %s", len(releases), repo.url)
        return releases

    def download_artifact(
        self,
        repo: RepositorySpec,
        tag: str,
        filename: str,
        cancel: CancelToken | None = None,
    ) -> bytes:
        """Download the asset called filename from the release tagged tag."""
        api_base, owner, name = parse_repository_url(repo.url)
        release_url = f"{api_base}/repos/{owner}/{name}/releases/tags/{quote(tag, safe='')}"
        release = self._json(self._get(release_url, _JSON_HEADERS, cancel))

        for asset in release.get("assets", []):
            if asset.get("name") != filename:
                continue
            asset_url = asset.get("url") or asset.get("browser_download_url")
            if not asset_url:
                break
            logger.debug("Downloading %s from %s@%s", filename, repo.url, tag)
            return self._get(asset_url, _ASSET_HEADERS, cancel).content

        raise NotFoundError(f"asset '{filename}' not found in release '{tag}' of {repo.url}")

    def _get(self, url: str, headers: dict[str, str], cancel: CancelToken | None) -> httpx.Response:
        if cancel is not None:
            cancel.raise_if_cancelled()
        try:
            response = self.http.get(url, headers=headers)
        except httpx.TimeoutException as e:
            raise NetworkError(f"timeout while requesting {url}: {e}")
        except httpx.HTTPError as e:
            raise NetworkError(f"request to {url} failed: {e}")
        _raise_for_status(response)
        return response

    @staticmethod
    def _json(response: httpx.Response):
        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(f"invalid JSON from {response.request.url}: {e}")


def _raise_for_status(response: httpx.Response) -> None:
    status = response.status_code
    if status < 400:
        return
    url = response.request.url
    retry_after = response.headers.get("retry-after")
    # secondary rate limits answer 403 with Retry-After while quota remains
    if status == 429 or (status == 403 and (
        response.headers.get("x-ratelimit-remaining") == "0" or retry_after
    )):
        reset = response.headers.get("x-ratelimit-reset")
        raise RateLimitError(
            f"rate limit exceeded for {url}"
            + (f" (retry after {retry_after}s)" if retry_after else ""),
            reset_at=int(reset) if reset and reset.isdigit() else None,
        )
    if status == 404:
        raise NotFoundError(f"{url} not found")
    raise NetworkError(f"{url} returned HTTP {status}")
