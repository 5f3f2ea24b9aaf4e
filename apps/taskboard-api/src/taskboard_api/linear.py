"""Linear GraphQL client used to list the issues assigned to the app."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel
from taskboard_auth.credentials import CredentialRecord

logger = logging.getLogger(__name__)

LINEAR_GRAPHQL_URL = "https://api.linear.app/graphql"

_APP_ISSUES_QUERY = """
query AppIssues($first: Int!) {
  issues(
    first: $first
    filter: {
      assignee: { app: { eq: true } }
      state: { type: { nin: ["completed", "canceled"] } }
    }
  ) {
    nodes {
      id
      identifier
      title
      url
      priority
      state { name }
    }
  }
}
"""


class LinearAPIError(Exception):
    pass


class Issue(BaseModel):
    """An open issue as shown to volunteers."""

    id: str
    identifier: str
    title: str
    url: str
    priority: int = 0
    state: str | None = None

    @classmethod
    def from_node(cls, node: dict[str, Any]) -> Issue:
        state = node.get("state") or {}
        return cls(
            id=node["id"],
            identifier=node.get("identifier", ""),
            title=node.get("title", ""),
            url=node.get("url", ""),
            priority=node.get("priority") or 0,
            state=state.get("name"),
        )


class LinearClient:
    """Request-scoped client bound to one stored credential.

    Build a new instance per request from the current credential instead of
    caching one, so a revoked or expired token is never reused.
    """

    def __init__(
        self,
        access_token: str,
        *,
        endpoint: str = LINEAR_GRAPHQL_URL,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._access_token = access_token
        self.endpoint = endpoint
        self._transport = transport
        self._timeout = timeout

    @classmethod
    def for_credential(cls, record: CredentialRecord, **kwargs: Any) -> LinearClient:
        return cls(record.access_token, **kwargs)

    async def _query(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                resp = await client.post(
                    self.endpoint,
                    json={"query": query, "variables": variables},
                    headers={"Authorization": f"Bearer {self._access_token}"},
                )
        except httpx.HTTPError as e:
            raise LinearAPIError(f"Linear API unreachable: {type(e).__name__}") from e

        if not resp.is_success:
            raise LinearAPIError(f"Linear API returned {resp.status_code}")
        try:
            body = resp.json()
        except ValueError as e:
            raise LinearAPIError("Invalid JSON from Linear API") from e
        if body.get("errors"):
            messages = "; ".join(str(err.get("message", "unknown")) for err in body["errors"])
            raise LinearAPIError(f"Linear GraphQL error: {messages}")
        return body.get("data") or {}

    async def list_app_issues(self, *, first: int = 100) -> list[Issue]:
        data = await self._query(_APP_ISSUES_QUERY, {"first": first})
        nodes = (data.get("issues") or {}).get("nodes") or []
        return [Issue.from_node(node) for node in nodes]
