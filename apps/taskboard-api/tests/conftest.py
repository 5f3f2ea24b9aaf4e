"""Shared fixtures for taskboard-api tests."""

from typing import Any

import httpx
import pytest
from taskboard_api.settings import Settings

ENV = {
    "TASKBOARD_ENV": "development",
    "ADMIN_USERNAME": "admin",
    "ADMIN_PASSWORD": "correct-horse",
    "LINEAR_CLIENT_ID": "lin-client-123456",
    "LINEAR_CLIENT_SECRET": "lin-secret",
    "SESSION_SECRET": "api-test-session-secret",
    "PUBLIC_ORG_NAME": "Helpers United",
}


class LinearStub:
    """Fake Linear: token, revoke and GraphQL endpoints."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.graphql_status = 200
        self.graphql_body: dict[str, Any] = {
            "data": {
                "issues": {
                    "nodes": [
                        {
                            "id": "issue-1",
                            "identifier": "HLP-1",
                            "title": "Sort donations",
                            "url": "https://linear.app/helpers/issue/HLP-1",
                            "priority": 2,
                            "state": {"name": "Todo"},
                        }
                    ]
                }
            }
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/oauth/token":
            return httpx.Response(200, json={"access_token": "lin_oauth_abc", "expires_in": 3600})
        if request.url.path == "/oauth/revoke":
            return httpx.Response(200)
        if request.url.path == "/graphql":
            return httpx.Response(self.graphql_status, json=self.graphql_body)
        return httpx.Response(404)

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture
def env() -> dict[str, str]:
    return dict(ENV)


@pytest.fixture
def settings(env) -> Settings:
    return Settings.from_env(env)


@pytest.fixture
def linear() -> LinearStub:
    return LinearStub()
