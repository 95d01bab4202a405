"""Azure DevOps REST client with retries, rate-limit handling and response caching."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Sequence, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from hawki.core.config import settings
from hawki.core.exceptions import AzureDevOpsRequestError, InvalidConfigurationError
from hawki.integrations.azure_devops.cache import CacheKey, ResponseCache, response_cache
from hawki.integrations.azure_devops.payloads import (
    ClassificationNodePayload,
    ProjectPayload,
    TeamIterationPayload,
    TeamPayload,
    UserPayload,
    WorkItemPayload,
)
from hawki.integrations.azure_devops.wiql import chunk_ids

logger = logging.getLogger(__name__)

RESOURCE_KINDS = ("projects", "teams", "users", "team_iterations")
TEAMS_PAGE_SIZE = 100
CONTINUATION_HEADER = "x-ms-continuationtoken"

PayloadT = TypeVar("PayloadT", bound=BaseModel)


class PayloadList(list):
    """List of decoded payloads that remembers how many rows failed to decode."""

    rejected: int = 0


@dataclass
class WorkItemBatch:
    number: int
    total: int
    ids: list[int]
    items: list[WorkItemPayload] = field(default_factory=list)
    rejected: int = 0


def _decode_many(model: type[PayloadT], rows: Sequence[Any], *, resource: str) -> PayloadList:
    decoded = PayloadList()
    for row in rows:
        if not isinstance(row, dict):
            decoded.rejected += 1
            continue
        try:
            decoded.append(model.model_validate(row))
        except ValidationError as exc:
            decoded.rejected += 1
            logger.warning("Skipping malformed %s payload: %s", resource, exc.errors()[:3])
    return decoded


def _retry_after_seconds(response: httpx.Response, default: float) -> float:
    raw = (response.headers.get("Retry-After") or "").strip()
    if not raw:
        return default
    try:
        return max(float(raw), 0.0)
    except ValueError:
        return default


class AzureDevOpsClient:
    def __init__(
        self,
        *,
        organization: str | None = None,
        pat: str | None = None,
        cache: ResponseCache | None = None,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.organization = (organization if organization is not None else settings.ADO_ORGANIZATION).strip()
        self.pat = (pat if pat is not None else settings.ADO_PAT).strip()
        if not self.organization:
            raise InvalidConfigurationError("Azure DevOps organization is not configured", setting="ADO_ORGANIZATION")
        if not self.pat:
            raise InvalidConfigurationError("Azure DevOps personal access token is not configured", setting="ADO_PAT")

        org = quote(self.organization, safe="")
        self.base_url = f"{settings.ADO_BASE_URL.rstrip('/')}/{org}"
        self.graph_url = f"{settings.ADO_GRAPH_API_URL.rstrip('/')}/{org}"
        self.api_version = settings.ADO_API_VERSION
        self.graph_api_version = settings.ADO_GRAPH_API_VERSION
        self.timeout = settings.ADO_REQUEST_TIMEOUT_SECONDS
        self.post_timeout = settings.ADO_POST_TIMEOUT_SECONDS
        self.max_retries = max(1, settings.ADO_MAX_RETRIES)
        self.cache = cache if cache is not None else response_cache
        self._transport = transport
        self._sleep = sleep

    # ----- transport -----

    def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        last_status: int | None = None
        last_body: str | None = None
        with httpx.Client(
            timeout=timeout or self.timeout,
            auth=("", self.pat),
            headers={"Accept": "application/json"},
            transport=self._transport,
        ) as client:
            for attempt in range(1, self.max_retries + 1):
                final = attempt >= self.max_retries
                try:
                    response = client.request(method, url, params=params, json=json_body)
                except httpx.HTTPError as exc:
                    last_status, last_body = None, str(exc)
                    logger.warning(
                        "Azure DevOps %s %s failed (attempt %s/%s): %s",
                        method, url, attempt, self.max_retries, exc,
                    )
                    if not final:
                        self._sleep(2**attempt)
                    continue

                if response.is_success:
                    return response

                last_status, last_body = response.status_code, response.text
                if response.status_code == 429:
                    wait = _retry_after_seconds(response, float(settings.ADO_DEFAULT_RETRY_AFTER_SECONDS))
                    logger.warning(
                        "Rate limited by Azure DevOps on %s (attempt %s/%s). Waiting %ss.",
                        url, attempt, self.max_retries, wait,
                    )
                    if not final:
                        self._sleep(wait)
                    continue

                logger.error(
                    "Azure DevOps API error status=%s endpoint=%s attempt=%s/%s",
                    response.status_code, url, attempt, self.max_retries,
                )
                if not final:
                    self._sleep(2**attempt)

        raise AzureDevOpsRequestError(
            f"Azure DevOps request failed after {self.max_retries} attempts: {(last_body or '')[:500]}",
            endpoint=url,
            attempts=self.max_retries,
            response_status=last_status,
            response_body=last_body,
        )

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def _cached(self, key: CacheKey, ttl_seconds: float, loader: Callable[[], Any]) -> Any:
        hit = self.cache.get(key)
        if hit is not None:
            return hit
        value = loader()
        self.cache.set(key, value, ttl_seconds=ttl_seconds)
        return value

    def throttle(self, delay_ms: int) -> None:
        if delay_ms > 0:
            self._sleep(delay_ms / 1000.0)

    # ----- list resources -----

    def fetch_list(self, kind: str, params: dict[str, Any] | None = None) -> PayloadList:
        options = dict(params or {})
        if kind == "projects":
            return self.list_projects()
        if kind == "teams":
            return self.list_teams(**options)
        if kind == "users":
            return self.list_users(**options)
        if kind == "team_iterations":
            return self.list_team_iterations(options["project_id"], options["team_id"])
        raise ValueError(f"Unsupported Azure DevOps resource kind: {kind}")

    def list_projects(self) -> PayloadList:
        key = CacheKey.build("projects", {"api-version": self.api_version})

        def load() -> PayloadList:
            rows: list[Any] = []
            token: str | None = None
            while True:
                params: dict[str, Any] = {"api-version": self.api_version}
                if token:
                    params["continuationToken"] = token
                response = self._request("GET", f"{self.base_url}/_apis/projects", params=params)
                rows.extend(self._json(response).get("value") or [])
                token = response.headers.get(CONTINUATION_HEADER)
                if not token:
                    break
            return _decode_many(ProjectPayload, rows, resource="project")

        return self._cached(key, settings.ADO_PROJECTS_CACHE_TTL_SECONDS, load)

    def list_teams(
        self,
        *,
        mine: bool | None = None,
        top: int | None = None,
        skip: int | None = None,
        expand_identity: bool | None = None,
    ) -> PayloadList:
        base_params: dict[str, Any] = {"api-version": self.api_version}
        if mine is not None:
            base_params["$mine"] = "true" if mine else "false"
        if expand_identity is not None:
            base_params["$expandIdentity"] = "true" if expand_identity else "false"
        key = CacheKey.build("teams", {**base_params, "$top": top, "$skip": skip})

        def load() -> PayloadList:
            url = f"{self.base_url}/_apis/teams"
            if top is not None:
                params = {**base_params, "$top": top, "$skip": skip or 0}
                rows = list(self._json(self._request("GET", url, params=params)).get("value") or [])
                return _decode_many(TeamPayload, rows, resource="team")

            rows = []
            offset = skip or 0
            while True:
                params = {**base_params, "$top": TEAMS_PAGE_SIZE, "$skip": offset}
                page = list(self._json(self._request("GET", url, params=params)).get("value") or [])
                rows.extend(page)
                if len(page) < TEAMS_PAGE_SIZE:
                    break
                offset += TEAMS_PAGE_SIZE
            return _decode_many(TeamPayload, rows, resource="team")

        return self._cached(key, settings.ADO_CACHE_TTL_SECONDS, load)

    def list_users(self, *, subject_types: str | None = None, scope_descriptor: str | None = None) -> PayloadList:
        base_params: dict[str, Any] = {"api-version": self.graph_api_version}
        if subject_types:
            base_params["subjectTypes"] = subject_types
        if scope_descriptor:
            base_params["scopeDescriptor"] = scope_descriptor
        key = CacheKey.build("users", base_params)

        def load() -> PayloadList:
            rows: list[Any] = []
            token: str | None = None
            while True:
                params = dict(base_params)
                if token:
                    params["continuationToken"] = token
                response = self._request("GET", f"{self.graph_url}/_apis/graph/users", params=params)
                rows.extend(self._json(response).get("value") or [])
                token = response.headers.get(CONTINUATION_HEADER)
                if not token:
                    break
            return _decode_many(UserPayload, rows, resource="user")

        return self._cached(key, settings.ADO_CACHE_TTL_SECONDS, load)

    def list_team_iterations(self, project_id: str, team_id: str) -> PayloadList:
        key = CacheKey.build("team_iterations", {"project_id": project_id, "team_id": team_id})

        def load() -> PayloadList:
            url = (
                f"{self.base_url}/{quote(project_id, safe='')}/{quote(team_id, safe='')}"
                "/_apis/work/teamsettings/iterations"
            )
            response = self._request("GET", url, params={"api-version": self.api_version})
            rows = list(self._json(response).get("value") or [])
            return _decode_many(TeamIterationPayload, rows, resource="team iteration")

        return self._cached(key, settings.ADO_CACHE_TTL_SECONDS, load)

    # ----- classification tree -----

    def fetch_tree(self, project_id: str, kind: str = "Iterations", depth: int = 10) -> ClassificationNodePayload:
        key = CacheKey.build("classification_nodes", {"project_id": project_id, "kind": kind, "depth": depth})

        def load() -> ClassificationNodePayload:
            url = f"{self.base_url}/{quote(project_id, safe='')}/_apis/wit/classificationnodes/{kind}"
            response = self._request("GET", url, params={"api-version": self.api_version, "$depth": depth})
            return ClassificationNodePayload.model_validate(self._json(response))

        return self._cached(key, settings.ADO_CACHE_TTL_SECONDS, load)

    # ----- work items -----

    def run_query(self, query: str, top: int | None = None) -> list[int]:
        params: dict[str, Any] = {"api-version": self.api_version}
        if top:
            params["$top"] = top
        response = self._request(
            "POST",
            f"{self.base_url}/_apis/wit/wiql",
            params=params,
            json_body={"query": query},
            timeout=self.post_timeout,
        )
        ids: list[int] = []
        for row in self._json(response).get("workItems") or []:
            if isinstance(row, dict) and row.get("id") is not None:
                ids.append(int(row["id"]))
        return ids

    def iter_work_item_batches(
        self,
        ids: Sequence[int],
        project: str,
        *,
        first_batch_only: bool = False,
        batch_size: int | None = None,
    ) -> Iterator[WorkItemBatch]:
        chunks = chunk_ids(ids, batch_size or settings.work_item_batch_size)
        if not chunks:
            return
        url = f"{self.base_url}/{quote(project, safe='')}/_apis/wit/workitemsbatch"
        total = 1 if first_batch_only else len(chunks)
        for number, chunk in enumerate(chunks[:total], start=1):
            if number > 1:
                self.throttle(settings.ADO_BATCH_DELAY_MS)
            logger.info("Fetching work item batch %s/%s (%s ids) for project %s", number, total, len(chunk), project)
            response = self._request(
                "POST",
                url,
                params={"api-version": self.api_version},
                json_body={"ids": chunk, "$expand": "all"},
                timeout=self.post_timeout,
            )
            decoded = _decode_many(WorkItemPayload, self._json(response).get("value") or [], resource="work item")
            yield WorkItemBatch(number=number, total=total, ids=list(chunk), items=list(decoded), rejected=decoded.rejected)

    def fetch_batch(self, ids: Sequence[int], project: str, *, first_batch_only: bool = False) -> list[WorkItemPayload]:
        items: list[WorkItemPayload] = []
        for batch in self.iter_work_item_batches(ids, project, first_batch_only=first_batch_only):
            items.extend(batch.items)
        return items
