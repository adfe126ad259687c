"""Shared fakes for HTTP and git."""

from pathlib import Path

import httpx
import pytest

from docharvest.ingestion.git_checkout import GitCommandError


class FakeSite:
    """Route table served through httpx.MockTransport.

    Each route maps a URL to ``(status, content_type, body)``. A route keyed by
    ``(url, accept)`` wins over the plain URL for requests with that Accept
    header. Unknown URLs answer 404.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.requests: list[tuple[str, str]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        accept = request.headers.get("accept", "")
        self.requests.append((url, accept))
        route = self.routes.get((url, accept)) or self.routes.get(url)
        if route is None:
            return httpx.Response(404, text="not found")
        status, content_type, body = route
        return httpx.Response(status, headers={"content-type": content_type}, text=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def urls_requested(self) -> list[str]:
        return [url for url, _ in self.requests]


@pytest.fixture
def site():
    return FakeSite()


class FakeGit:
    """Async git runner that records commands and fakes a remote.

    ``default_branch`` is what ``ls-remote`` reports (None makes it fail),
    ``good_refs`` are the refs a fetch succeeds for, and ``files`` are the
    relative paths materialized on checkout (a suffix marks a file).
    """

    def __init__(self, default_branch=None, good_refs=("main",), files=(), contents=None):
        self.default_branch = default_branch
        self.good_refs = set(good_refs)
        self.files = list(files)
        self.contents = contents or {}
        self.calls: list[list[str]] = []

    async def __call__(self, args: list[str], cwd: Path) -> str:
        self.calls.append(list(args))
        if args[:2] == ["ls-remote", "--symref"]:
            if self.default_branch is None:
                raise GitCommandError(args, 128, "could not read from remote")
            return f"ref: refs/heads/{self.default_branch}\tHEAD\n0123abcd\tHEAD\n"
        if args[0] == "fetch" and args[-1] not in self.good_refs:
            raise GitCommandError(args, 128, f"couldn't find remote ref {args[-1]}")
        if args[0] == "checkout":
            for rel in self.files:
                target = Path(cwd) / rel
                if target.suffix:
                    target.parent.mkdir(parents=True, exist_ok=True)
                    target.write_text(self.contents.get(rel, f"# {target.stem}\n"), encoding="utf-8")
                else:
                    target.mkdir(parents=True, exist_ok=True)
        return ""

    def commands(self, name: str) -> list[list[str]]:
        return [c for c in self.calls if c[0] == name]


@pytest.fixture
def fake_git():
    """Factory for FakeGit runners."""
    return FakeGit
