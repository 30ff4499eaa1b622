from typing import Awaitable, Callable, Optional

from fastapi import Request

from forge.api.bridge import BridgeManager
from forge.core.client_config import ClientConfig
from forge.core.item_catalog import ItemCatalogClient
from forge.pipeline.orchestrator import GenerationOrchestrator


def get_orchestrator(request: Request) -> Optional[GenerationOrchestrator]:
    """
    Dependency to get the shared GenerationOrchestrator instance.

    None when no provider API key is configured.
    """
    return request.app.state.orchestrator


def get_config(request: Request) -> ClientConfig:
    """Dependency to get the shared client configuration."""
    return request.app.state.client_config


def get_catalog_client(request: Request) -> ItemCatalogClient:
    """Dependency to get the shared ItemCatalogClient instance."""
    return request.app.state.catalog_client


def get_bridge_manager(request: Request) -> BridgeManager:
    """Dependency to get the host-application bridge manager."""
    return request.app.state.bridge_manager


def get_generation_recorder(request: Request) -> Callable[..., Awaitable[object]]:
    """Dependency to get the coroutine that persists finished runs."""
    return request.app.state.generation_recorder
