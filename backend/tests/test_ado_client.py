from __future__ import annotations

import json

import httpx
import pytest

from hawki.core.exceptions import AzureDevOpsRequestError, InvalidConfigurationError
from hawki.integrations.azure_devops.cache import ResponseCache
from hawki.integrations.azure_devops.client import TEAMS_PAGE_SIZE, AzureDevOpsClient


def _client(handler, sleeps: list[float] | None = None) -> AzureDevOpsClient:  # noqa: ANN001
    recorded = sleeps if sleeps is not None else []
    return AzureDevOpsClient(
        organization="contoso",
        pat="secret",
        cache=ResponseCache(),
        transport=httpx.MockTransport(handler),
        sleep=recorded.append,
    )


def test_missing_credentials_fail_before_any_request() -> None:
    with pytest.raises(InvalidConfigurationError) as excinfo:
        AzureDevOpsClient(organization="", pat="secret", cache=ResponseCache())
    assert excinfo.value.details == {"setting": "ADO_ORGANIZATION"}

    with pytest.raises(InvalidConfigurationError):
        AzureDevOpsClient(organization="contoso", pat="  ", cache=ResponseCache())


def test_rate_limited_endpoint_stops_after_three_attempts() -> None:
    calls: list[str] = []
    sleeps: list[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(429, headers={"Retry-After": "7"}, text="slow down")

    client = _client(handler, sleeps)
    with pytest.raises(AzureDevOpsRequestError) as excinfo:
        client.run_query("SELECT [System.Id] FROM WorkItems")

    assert len(calls) == 3
    # No wait after the final attempt.
    assert sleeps == [7.0, 7.0]
    assert excinfo.value.attempts == 3
    assert excinfo.value.response_status == 429
    assert excinfo.value.response_body == "slow down"
    assert excinfo.value.status_code == 502


def test_server_error_backs_off_then_succeeds() -> None:
    sleeps: list[float] = []
    attempts = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["n"] += 1
        if attempts["n"] == 1:
            return httpx.Response(500, text="boom")
        return httpx.Response(200, json={"workItems": [{"id": 5}, {"id": 9}]})

    client = _client(handler, sleeps)
    assert client.run_query("q") == [5, 9]
    assert sleeps == [2]


def test_transport_errors_count_as_attempts() -> None:
    sleeps: list[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = _client(handler, sleeps)
    with pytest.raises(AzureDevOpsRequestError) as excinfo:
        client.run_query("q")
    assert sleeps == [2, 4]
    assert excinfo.value.response_status is None


def test_wiql_query_sends_top_and_basic_auth() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["top"] = request.url.params.get("$top")
        seen["body"] = json.loads(request.content)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"workItems": [{"id": 1}, {"url": "no id"}, {"id": "3"}]})

    client = _client(handler)
    assert client.run_query("SELECT 1", 500) == [1, 3]
    assert seen["method"] == "POST"
    assert seen["top"] == "500"
    assert seen["body"] == {"query": "SELECT 1"}
    assert seen["auth"].startswith("Basic ")


def test_projects_follow_continuation_token_and_are_cached() -> None:
    calls: list[str | None] = []

    def handler(request: httpx.Request) -> httpx.Response:
        token = request.url.params.get("continuationToken")
        calls.append(token)
        if token is None:
            return httpx.Response(
                200,
                json={"value": [{"id": "p1", "name": "Alpha", "state": "wellFormed"}]},
                headers={"x-ms-continuationtoken": "next"},
            )
        return httpx.Response(200, json={"value": [{"id": "p2", "name": "Beta"}, {"name": "missing id"}]})

    client = _client(handler)
    projects = client.fetch_list("projects")
    assert [project.id for project in projects] == ["p1", "p2"]
    assert projects.rejected == 1
    assert calls == [None, "next"]

    again = client.fetch_list("projects")
    assert [project.id for project in again] == ["p1", "p2"]
    assert calls == [None, "next"]


def test_teams_page_until_short_page() -> None:
    skips: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        skip = request.url.params["$skip"]
        skips.append(skip)
        size = TEAMS_PAGE_SIZE if skip == "0" else 1
        offset = int(skip)
        rows = [{"id": f"t{offset + i}", "name": f"Team {offset + i}", "projectId": "p1"} for i in range(size)]
        return httpx.Response(200, json={"value": rows})

    client = _client(handler)
    teams = client.fetch_list("teams", {"expand_identity": True})
    assert len(teams) == TEAMS_PAGE_SIZE + 1
    assert skips == ["0", str(TEAMS_PAGE_SIZE)]


def test_users_use_graph_host_and_continuation_header() -> None:
    hosts: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        hosts.append(request.url.host)
        if request.url.params.get("continuationToken"):
            return httpx.Response(200, json={"value": [{"descriptor": "aad.2", "displayName": "B"}]})
        return httpx.Response(
            200,
            json={"value": [{"descriptor": "aad.1", "displayName": "A"}]},
            headers={"X-MS-ContinuationToken": "abc"},
        )

    client = _client(handler)
    users = client.fetch_list("users", {"subject_types": "aad"})
    assert [user.descriptor for user in users] == ["aad.1", "aad.2"]
    assert hosts == ["vssps.dev.azure.com", "vssps.dev.azure.com"]


def test_unknown_resource_kind_is_rejected() -> None:
    client = _client(lambda request: httpx.Response(200, json={}))
    with pytest.raises(ValueError):
        client.fetch_list("pipelines")


def test_work_item_batches_throttle_between_chunks() -> None:
    requested: list[list[int]] = []
    sleeps: list[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["$expand"] == "all"
        requested.append(body["ids"])
        return httpx.Response(200, json={"value": [{"id": item_id, "fields": {}} for item_id in body["ids"]]})

    client = _client(handler, sleeps)
    batches = list(client.iter_work_item_batches(list(range(1, 46)), "Alpha", batch_size=20))
    assert [len(batch.items) for batch in batches] == [20, 20, 5]
    assert [batch.number for batch in batches] == [1, 2, 3]
    assert all(batch.total == 3 for batch in batches)
    assert sleeps == [0.1, 0.1]

    requested.clear()
    items = client.fetch_batch(list(range(1, 46)), "Alpha", first_batch_only=True)
    assert len(items) == 20
    assert len(requested) == 1


def test_empty_id_list_makes_no_batch_requests() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client = _client(handler)
    assert client.fetch_batch([], "Alpha") == []
