"""
GitHub REST and GraphQL client.

A thin async wrapper over httpx that covers exactly the endpoints a run
needs. Read-only calls (REST GETs and GraphQL queries) are memoised in a
run-scoped RequestCache that the caller creates and passes in; nothing is
shared across runs.
"""

import json
from typing import Any, Dict, List, Optional

import httpx

from codez.utils.errors import GitHostError
from codez.utils.logging import get_logger
from codez.utils.metrics import RunMetrics, track_api_call
from codez.utils.resilience import TransientError, retry_with_backoff


logger = get_logger(__name__)

USER_AGENT = "codez"
API_VERSION = "2022-11-28"
IDEMPOTENT_METHODS = frozenset({"GET", "PATCH", "DELETE"})


class RequestCache:
    """
    In-memory memo of read-only GitHub responses for one run.

    Keys combine the HTTP method, path and parameters (or the GraphQL query
    and variables), so two identical reads within a run hit the API once.
    """

    def __init__(self):
        self._entries: Dict[str, Any] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(kind: str, target: str, params: Optional[Dict[str, Any]] = None) -> str:
        return f"{kind}:{target}:{json.dumps(params or {}, sort_keys=True, default=str)}"

    def get(self, key: str) -> Any:
        if key in self._entries:
            self.hits += 1
            return self._entries[key]
        self.misses += 1
        return None

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = value

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class GitHubClient:
    """
    Async client for the GitHub API scoped to one repository.

    Handles:
    - Authentication and API versioning headers
    - Retry with exponential backoff on 5xx responses and transport errors,
      for idempotent calls only
    - Link-header pagination
    - Caching of read-only calls through an explicit RequestCache
    - Translation of every failure into GitHostError
    """

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        api_url: str = "https://api.github.com",
        cache: Optional[RequestCache] = None,
        metrics: Optional[RunMetrics] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        """
        Initialize the client.

        Args:
            token: GitHub token used for every request
            owner: Repository owner
            repo: Repository name
            api_url: Base URL of the REST API
            cache: Run-scoped cache for read-only calls (no caching if None)
            metrics: Optional metrics collector for API latencies
            http_client: Pre-built httpx client (tests pass one with a mock transport)
            timeout: Per-request timeout in seconds
        """
        self.owner = owner
        self.repo = repo
        self.api_url = api_url.rstrip("/")
        self.cache = cache
        self.metrics = metrics
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_http = http_client is None
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
            "User-Agent": USER_AGENT,
        }

    @property
    def repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            async with track_api_call(self.metrics, "github", url, method) as call:
                response = await self._http.request(method, url, headers=self._headers, **kwargs)
                call["status_code"] = response.status_code
        except httpx.TransportError as e:
            raise TransientError(f"{method} {url} failed: {e}") from e

        if response.status_code >= 500:
            raise TransientError(f"{method} {url} returned {response.status_code}")
        return response

    @retry_with_backoff(max_retries=3, base_delay=1.0, max_delay=10.0, exceptions=(TransientError,))
    async def _send_with_retry(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        return await self._send(method, url, **kwargs)

    async def request_raw(
        self, method: str, path: str, retry: Optional[bool] = None, **kwargs: Any
    ) -> httpx.Response:
        """
        Send a request and return the successful response.

        Only idempotent methods are retried by default. A POST that creates
        something is sent once, since a 5xx does not prove it was not applied.

        Args:
            method: HTTP method
            path: API path or absolute URL
            retry: Override whether transient failures are retried

        Raises:
            GitHostError: On a 4xx/5xx response or exhausted retries
        """
        url = path if path.startswith("http") else f"{self.api_url}{path}"
        if retry is None:
            retry = method in IDEMPOTENT_METHODS
        send = self._send_with_retry if retry else self._send
        try:
            response = await send(method, url, **kwargs)
        except TransientError as e:
            raise GitHostError(str(e)) from e

        if response.status_code >= 400:
            raise GitHostError(
                f"{method} {path} failed with {response.status_code}: {_error_detail(response)}",
                status_code=response.status_code,
            )
        return response

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        use_cache: Optional[bool] = None,
    ) -> Any:
        """
        Send a REST request and return the decoded JSON body.

        GET requests are cached by default; pass ``use_cache=False`` for reads
        whose result changes during a run.
        """
        cacheable = method == "GET" if use_cache is None else use_cache
        key = RequestCache.make_key(method, path, params)
        if cacheable and self.cache is not None and key in self.cache:
            return self.cache.get(key)

        response = await self.request_raw(method, path, params=params, json=json_body)
        data = response.json() if response.content else None

        if cacheable and self.cache is not None:
            self.cache.set(key, data)
        return data

    async def paginate(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Any]:
        """Collect every item of a paginated list endpoint."""
        query = dict(params or {})
        query.setdefault("per_page", 100)
        key = RequestCache.make_key("PAGINATE", path, query)
        if self.cache is not None and key in self.cache:
            return self.cache.get(key)

        items: List[Any] = []
        next_url: Optional[str] = path
        next_params: Optional[Dict[str, Any]] = query
        while next_url:
            response = await self.request_raw("GET", next_url, params=next_params)
            items.extend(response.json())
            next_url = response.links.get("next", {}).get("url")
            next_params = None

        if self.cache is not None:
            self.cache.set(key, items)
        return items

    async def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None, use_cache: bool = True) -> Dict[str, Any]:
        """
        Run a GraphQL query or mutation and return its ``data``.

        Mutations must pass ``use_cache=False``; they are neither cached nor
        retried. Queries are retried on transient failures.

        Raises:
            GitHostError: On transport failure or a response carrying ``errors``
        """
        key = RequestCache.make_key("GRAPHQL", query, variables)
        if use_cache and self.cache is not None and key in self.cache:
            return self.cache.get(key)

        response = await self.request_raw(
            "POST", "/graphql", retry=use_cache, json={"query": query, "variables": variables or {}}
        )
        payload = response.json()
        if payload.get("errors"):
            messages = "; ".join(err.get("message", "unknown error") for err in payload["errors"])
            raise GitHostError(f"GraphQL error: {messages}")

        data = payload.get("data") or {}
        if use_cache and self.cache is not None:
            self.cache.set(key, data)
        return data

    # ------------------------------------------------------------------
    # Repository
    # ------------------------------------------------------------------

    async def get_repository(self) -> Dict[str, Any]:
        return await self.request("GET", self.repo_path)

    async def get_collaborator_permission(self, username: str) -> str:
        data = await self.request("GET", f"{self.repo_path}/collaborators/{username}/permission")
        return data.get("permission", "none")

    # ------------------------------------------------------------------
    # Issues and comments
    # ------------------------------------------------------------------

    async def create_issue(self, title: str, body: str) -> Dict[str, Any]:
        return await self.request("POST", f"{self.repo_path}/issues", json_body={"title": title, "body": body})

    async def update_issue(self, number: int, **fields: Any) -> Dict[str, Any]:
        return await self.request("PATCH", f"{self.repo_path}/issues/{number}", json_body=fields)

    async def create_issue_comment(self, number: int, body: str) -> Dict[str, Any]:
        return await self.request(
            "POST", f"{self.repo_path}/issues/{number}/comments", json_body={"body": body}
        )

    async def update_issue_comment(self, comment_id: int, body: str) -> Dict[str, Any]:
        return await self.request(
            "PATCH", f"{self.repo_path}/issues/comments/{comment_id}", json_body={"body": body}
        )

    async def create_review_comment_reply(self, pull_number: int, comment_id: int, body: str) -> Dict[str, Any]:
        return await self.request(
            "POST",
            f"{self.repo_path}/pulls/{pull_number}/comments/{comment_id}/replies",
            json_body={"body": body},
        )

    async def update_review_comment(self, comment_id: int, body: str) -> Dict[str, Any]:
        return await self.request(
            "PATCH", f"{self.repo_path}/pulls/comments/{comment_id}", json_body={"body": body}
        )

    # ------------------------------------------------------------------
    # Reactions
    # ------------------------------------------------------------------

    async def create_reaction(self, reactions_path: str, content: str) -> Dict[str, Any]:
        return await self.request("POST", reactions_path, json_body={"content": content})

    async def list_reactions(self, reactions_path: str) -> List[Dict[str, Any]]:
        return await self.request("GET", reactions_path, params={"per_page": 100}, use_cache=False)

    async def delete_reaction(self, reactions_path: str, reaction_id: int) -> None:
        await self.request("DELETE", f"{reactions_path}/{reaction_id}")

    # ------------------------------------------------------------------
    # Pull requests
    # ------------------------------------------------------------------

    async def get_pull_request(self, number: int) -> Dict[str, Any]:
        return await self.request("GET", f"{self.repo_path}/pulls/{number}")

    async def create_pull_request(
        self, title: str, head: str, base: str, body: str, maintainer_can_modify: bool = True
    ) -> Dict[str, Any]:
        return await self.request(
            "POST",
            f"{self.repo_path}/pulls",
            json_body={
                "title": title,
                "head": head,
                "base": base,
                "body": body,
                "maintainer_can_modify": maintainer_can_modify,
            },
        )

    async def list_pull_request_files(self, number: int) -> List[str]:
        files = await self.paginate(f"{self.repo_path}/pulls/{number}/files")
        return [f["filename"] for f in files]

    async def list_review_comments(self, number: int) -> List[Dict[str, Any]]:
        return await self.paginate(f"{self.repo_path}/pulls/{number}/comments")

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def list_failed_workflow_runs(self, per_page: int = 1) -> List[Dict[str, Any]]:
        data = await self.request(
            "GET",
            f"{self.repo_path}/actions/runs",
            params={"status": "failure", "per_page": per_page},
        )
        return data.get("workflow_runs", [])

    async def download_run_logs(self, run_id: int) -> bytes:
        """Download the zip archive of a workflow run's logs."""
        response = await self.request_raw(
            "GET", f"{self.repo_path}/actions/runs/{run_id}/logs", follow_redirects=True
        )
        return response.content


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return response.text[:200]
