"""Common FastAPI dependencies for remote clients and progress reporting."""

from __future__ import annotations

from hawki.integrations.azure_devops.cache import response_cache
from hawki.integrations.azure_devops.client import AzureDevOpsClient
from hawki.integrations.bamboohr.client import BambooHRClient
from hawki.services.progress import InMemoryProgressSink, progress_store


def get_ado_client() -> AzureDevOpsClient:
    # Raises InvalidConfigurationError before any request when credentials are missing.
    return AzureDevOpsClient(cache=response_cache)


def get_bamboohr_client() -> BambooHRClient:
    return BambooHRClient()


def get_progress_sink() -> InMemoryProgressSink:
    return progress_store
