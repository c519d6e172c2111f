"""Fake GitHub releases API and release artifact builders for tests.

FakeGitHub serves the three endpoints RepositoryClient uses through an
httpx.MockTransport, so no network access happens in tests.
"""

import hashlib
import io
import tarfile
import threading

import httpx
import yaml

from catalog_cd.services.github_client import RepositoryClient

API = "https://api.github.com"


def sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def make_tarball(files: dict[str, bytes]) -> bytes:
    """Build a .tar.gz with the given files."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, data in files.items():
            info = tarfile.TarInfo(name=name)
            info.size = len(data)
            info.mtime = 0
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def make_contract(resources: dict[str, list[dict]]) -> bytes:
    """Build a contract grouped by resource type."""
    return yaml.safe_dump({"catalog": {"description": "test", "resources": resources}}).encode("utf-8")


def task_release(name: str, version: str, content: bytes | None = None,
                 checksum: str | None = None, resource_type: str = "tasks") -> dict[str, bytes]:
    """Assets of a release shipping one resource: catalog.yaml + resources.tar.gz."""
    content = content if content is not None else f"kind: Task\nname: {name}\nversion: {version}\n".encode()
    path = f"{resource_type}/{name}/{name}.yaml"
    contract = make_contract({
        resource_type: [{
            "name": name,
            "version": version,
            "filename": path,
            "checksum": checksum or sha256(content),
        }],
    })
    return {
        "catalog.yaml": contract,
        "resources.tar.gz": make_tarball({path: content}),
    }


class FakeGitHub:
    """In-memory GitHub: repositories → releases → assets."""

    def __init__(self, page_size: int = 100):
        self.page_size = page_size
        self.repos: dict[str, list[dict]] = {}
        self.assets: dict[int, bytes] = {}
        self.requests: list[httpx.Request] = []
        self.rate_limited = False
        self.on_request = None
        self._lock = threading.Lock()

    def add_repo(self, full_name: str) -> None:
        self.repos.setdefault(full_name, [])

    def add_release(self, full_name: str, tag: str, assets: dict[str, bytes], draft: bool = False) -> None:
        self.add_repo(full_name)
        asset_rows = []
        for name, data in assets.items():
            asset_id = len(self.assets) + 1
            self.assets[asset_id] = data
            asset_rows.append({
                "id": asset_id,
                "name": name,
                "url": f"{API}/repos/{full_name}/releases/assets/{asset_id}",
            })
        self.repos[full_name].append({"tag_name": tag, "draft": draft, "assets": asset_rows})

    def client(self) -> RepositoryClient:
        http = httpx.Client(transport=httpx.MockTransport(self.handler), follow_redirects=True)
        return RepositoryClient(http)

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        if self.on_request is not None:
            self.on_request(request)
        if self.rate_limited:
            return httpx.Response(
                403,
                headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1700000000"},
                json={"message": "API rate limit exceeded"},
            )

        parts = request.url.path.strip("/").split("/")
        if len(parts) < 4 or parts[0] != "repos" or parts[3] != "releases":
            return httpx.Response(404, json={"message": "Not Found"})
        full_name = f"{parts[1]}/{parts[2]}"
        releases = self.repos.get(full_name)
        if releases is None:
            return httpx.Response(404, json={"message": "Not Found"})

        if len(parts) == 4:
            return self._list(request, full_name, releases)
        if len(parts) == 6 and parts[4] == "tags":
            for release in releases:
                if release["tag_name"] == parts[5]:
                    return httpx.Response(200, json=release)
            return httpx.Response(404, json={"message": "Not Found"})
        if len(parts) == 6 and parts[4] == "assets":
            if request.headers.get("accept") != "application/octet-stream":
                return httpx.Response(415)
            data = self.assets.get(int(parts[5]))
            if data is None:
                return httpx.Response(404)
            return httpx.Response(200, content=data)
        return httpx.Response(404, json={"message": "Not Found"})

    def _list(self, request: httpx.Request, full_name: str, releases: list[dict]) -> httpx.Response:
        page = int(request.url.params.get("page", "1"))
        start = (page - 1) * self.page_size
        chunk = releases[start:start + self.page_size]
        headers = {}
        if start + self.page_size < len(releases):
            headers["Link"] = (
                f'<{API}/repos/{full_name}/releases?per_page=100&page={page + 1}>; rel="next", '
                f'<{API}/repos/{full_name}/releases?per_page=100&page=1>; rel="first"'
            )
        return httpx.Response(200, json=chunk, headers=headers)
