from __future__ import annotations

import asyncio
import base64
import re
from dataclasses import dataclass, field

import httpx
import pytest

from flatten_github.github_client import GitHubClient

_REPO_RE = re.compile(r"^/repos/(?P<owner>[^/]+)/(?P<name>[^/]+)$")
_TREE_RE = re.compile(r"^/repos/(?P<owner>[^/]+)/(?P<name>[^/]+)/git/trees/(?P<ref>.+)$")
_BLOB_RE = re.compile(r"^/repos/(?P<owner>[^/]+)/(?P<name>[^/]+)/git/blobs/(?P<sha>[^/]+)$")


def encode_blob(data: bytes) -> str:
    """Base64 with a line break every 60 characters, like the GitHub API."""
    encoded = base64.b64encode(data).decode("ascii")
    return "\n".join(encoded[i : i + 60] for i in range(0, len(encoded), 60)) + "\n"


@dataclass
class FakeGitHub:
    """In-memory stand-in for the three GitHub endpoints used by the client."""

    full_name: str = "acme/widgets"
    default_branch: str = "main"
    branches: set[str] = field(default_factory=lambda: {"main"})
    tree: list[dict] = field(default_factory=list)
    blobs: dict[str, bytes] = field(default_factory=dict)
    blob_status: dict[str, int] = field(default_factory=dict)
    blob_delays: dict[str, float] = field(default_factory=dict)
    truncated: bool = False
    repo_response: httpx.Response | None = None
    requests: list[httpx.Request] = field(default_factory=list)
    in_flight: int = 0
    max_in_flight: int = 0

    def add_file(self, path: str, content: str | bytes, *, size: int | None = None, sha: str | None = None) -> str:
        data = content.encode("utf-8") if isinstance(content, str) else content
        sha = sha or f"sha-{len(self.tree)}"
        item = {"path": path, "mode": "100644", "type": "blob", "sha": sha, "url": ""}
        item["size"] = len(data) if size is None else size
        self.tree.append(item)
        self.blobs[sha] = data
        return sha

    def add_dir(self, path: str) -> None:
        self.tree.append({"path": path, "mode": "040000", "type": "tree", "sha": f"tree-{len(self.tree)}", "url": ""})

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if m := _BLOB_RE.match(path):
            return await self._blob(m["sha"])
        if m := _TREE_RE.match(path):
            if not self._known(m["owner"], m["name"]) or m["ref"] not in self.branches:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json={"sha": "tree-root", "tree": self.tree, "truncated": self.truncated})
        if m := _REPO_RE.match(path):
            if self.repo_response is not None:
                return self.repo_response
            if not self._known(m["owner"], m["name"]):
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(
                200,
                json={
                    "full_name": self.full_name,
                    "default_branch": self.default_branch,
                    "private": False,
                    "size": 42,
                },
            )
        return httpx.Response(404, json={"message": "Not Found"})

    def _known(self, owner: str, name: str) -> bool:
        return f"{owner}/{name}".lower() == self.full_name.lower()

    async def _blob(self, sha: str) -> httpx.Response:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.blob_delays.get(sha, 0))
            if sha in self.blob_status:
                return httpx.Response(self.blob_status[sha], json={"message": "Server Error"})
            if sha not in self.blobs:
                return httpx.Response(404, json={"message": "Not Found"})
            data = self.blobs[sha]
            return httpx.Response(
                200,
                json={"sha": sha, "size": len(data), "encoding": "base64", "content": encode_blob(data)},
            )
        finally:
            self.in_flight -= 1

    def client(self, token: str | None = None) -> GitHubClient:
        return GitHubClient(token, transport=httpx.MockTransport(self.handler))

    def blob_requests(self) -> list[str]:
        return [r.url.path.rsplit("/", 1)[-1] for r in self.requests if "/git/blobs/" in r.url.path]


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()
