"""Tests for the Linear GraphQL client."""

import json

import httpx
import pytest
from taskboard_api.linear import LINEAR_GRAPHQL_URL, Issue, LinearAPIError, LinearClient
from taskboard_auth import CredentialRecord


def _client(handler) -> LinearClient:
    return LinearClient("lin_oauth_abc", transport=httpx.MockTransport(handler))


async def test_list_app_issues(linear):
    issues = await _client(linear).list_app_issues(first=25)

    assert issues == [
        Issue(
            id="issue-1",
            identifier="HLP-1",
            title="Sort donations",
            url="https://linear.app/helpers/issue/HLP-1",
            priority=2,
            state="Todo",
        )
    ]
    request = linear.requests[0]
    assert str(request.url) == LINEAR_GRAPHQL_URL
    assert request.headers["authorization"] == "Bearer lin_oauth_abc"
    payload = json.loads(request.content)
    assert payload["variables"] == {"first": 25}
    assert "app: { eq: true }" in payload["query"]
    assert '"completed", "canceled"' in payload["query"]


async def test_list_app_issues_empty():
    issues = await _client(lambda r: httpx.Response(200, json={"data": {"issues": {"nodes": []}}})).list_app_issues()
    assert issues == []


def test_issue_from_sparse_node():
    issue = Issue.from_node({"id": "x", "priority": None, "state": None})
    assert issue.priority == 0
    assert issue.state is None
    assert issue.title == ""


def test_for_credential_uses_record_token():
    record = CredentialRecord(access_token="lin_oauth_xyz", created_at=1, expires_at=2)
    client = LinearClient.for_credential(record)
    assert client._access_token == "lin_oauth_xyz"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(401, json={"errors": [{"message": "Authentication required"}]}),
        httpx.Response(200, content=b"<html>"),
        httpx.Response(200, json={"errors": [{"message": "Field 'app' not found"}]}),
    ],
)
async def test_errors_raise_linear_api_error(response):
    with pytest.raises(LinearAPIError):
        await _client(lambda r: response).list_app_issues()


async def test_network_failure_raises_linear_api_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(LinearAPIError, match="unreachable"):
        await _client(handler).list_app_issues()
