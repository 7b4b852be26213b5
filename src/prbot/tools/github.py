"""GitHub REST helpers used to open child pull requests and post comments."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .vcs import GitError, GitRepository

LOGGER = logging.getLogger(__name__)

Transport = Callable[[str, str, Optional[Dict[str, Any]]], str]


class GitHubError(RuntimeError):
    """Raised when a GitHub API call fails or returns an unexpected payload."""


@dataclass(frozen=True, slots=True)
class ChangeRequest:
    """Pull request created for an applied plan."""

    number: int
    url: str = ""


@dataclass(frozen=True, slots=True)
class PullRequestInfo:
    """The fields of an existing pull request the bot needs."""

    number: int
    head_ref: str
    head_sha: str


class GitHubClient:
    """Minimal client for the pull-request and issue-comment endpoints."""

    def __init__(
        self,
        *,
        owner: str,
        repo: str,
        token: Optional[str] = None,
        api_url: str = "https://api.github.com",
        transport: Optional[Transport] = None,
        timeout: float = 30.0,
    ) -> None:
        self.owner = owner
        self.repo = repo
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport or self._http_transport

        if transport is None and not self._token:
            raise ValueError("A GitHub token is required when using the default transport.")

    def _repo_url(self, suffix: str) -> str:
        return f"{self._api_url}/repos/{self.owner}/{self.repo}/{suffix.lstrip('/')}"

    def _request(self, method: str, suffix: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = self._repo_url(suffix)
        try:
            raw = self._transport(method, url, body)
        except GitHubError:
            raise
        except OSError as error:
            raise GitHubError(f"{method} {url} failed: {error}") from error

        try:
            data = json.loads(raw) if raw else {}
        except json.JSONDecodeError as error:
            raise GitHubError(f"{method} {url} returned invalid JSON") from error
        if not isinstance(data, dict):
            raise GitHubError(f"{method} {url} returned an unexpected payload")
        return data

    def _http_transport(self, method: str, url: str, body: Optional[Dict[str, Any]]) -> str:
        """Default HTTP transport targeting the GitHub REST API."""
        import urllib.error
        import urllib.request

        data = json.dumps(body).encode("utf-8") if body is not None else None
        request = urllib.request.Request(
            url,
            data=data,
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {self._token}",
                "Content-Type": "application/json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "gpt-pr-bot",
            },
            method=method,
        )
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                return response.read().decode("utf-8")
        except urllib.error.HTTPError as error:  # pragma: no cover - network-dependent
            message = error.read().decode("utf-8", errors="ignore")
            raise GitHubError(f"HTTP {error.code} from {method} {url}: {message}") from error
        except urllib.error.URLError as error:  # pragma: no cover - network-dependent
            raise GitHubError(f"Failed to reach GitHub: {error.reason}") from error

    def get_pull(self, number: int) -> PullRequestInfo:
        data = self._request("GET", f"pulls/{number}")
        head = data.get("head")
        if not isinstance(head, dict) or not head.get("ref") or not head.get("sha"):
            raise GitHubError(f"Pull request #{number} payload has no head ref/sha")
        return PullRequestInfo(number=number, head_ref=str(head["ref"]), head_sha=str(head["sha"]))

    def create_pull(self, *, head: str, base: str, title: str, body: str) -> ChangeRequest:
        data = self._request(
            "POST",
            "pulls",
            {"head": head, "base": base, "title": title, "body": body},
        )
        number = data.get("number")
        if not isinstance(number, int):
            raise GitHubError("Create pull request response has no number")
        return ChangeRequest(number=number, url=str(data.get("html_url") or ""))

    def create_comment(self, issue_number: int, body: str) -> None:
        self._request("POST", f"issues/{issue_number}/comments", {"body": body})


class GitHubVersionControl:
    """Version-control collaborator backed by local git and the GitHub API."""

    def __init__(self, repository: GitRepository, client: GitHubClient, *, remote: str = "origin") -> None:
        self._repository = repository
        self._client = client
        self._remote = remote

    def create_branch(self, name: str) -> None:
        LOGGER.info("Creating work branch %s", name)
        self._repository.create_branch(name)

    def commit_all(self, message: str) -> str:
        sha = self._repository.commit_all(message)
        if sha is None:
            raise GitError("Applied edits left the working tree unchanged; nothing to commit.")
        LOGGER.info("Committed %s", sha[:7])
        return sha

    def push(self, branch: str) -> None:
        self._repository.push(self._remote, branch, set_upstream=True)

    def open_change_request(self, *, head: str, base: str, title: str, body: str) -> ChangeRequest:
        change_request = self._client.create_pull(head=head, base=base, title=title, body=body)
        LOGGER.info("Opened pull request #%d", change_request.number)
        return change_request

    def post_comment(self, conversation_id: int, body: str) -> None:
        self._client.create_comment(conversation_id, body)


__all__ = [
    "ChangeRequest",
    "GitHubClient",
    "GitHubError",
    "GitHubVersionControl",
    "PullRequestInfo",
]
