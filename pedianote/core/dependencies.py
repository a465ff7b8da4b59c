"""Dependency injection for the PediaNote service.

This module provides dependency injection functions for FastAPI
to manage configuration, clients, and service instances.
"""

from functools import lru_cache
from fastapi import Depends
from httpx import AsyncClient

from .config import Config, config
from .client import get_http_client
from ..agents.note_agent.service import NoteAgentService
from ..agents.tools_agent.service import ToolsAgentService
from ..encounters.state import EncounterStore
from ..encounters.workflow import EncounterWorkflow


@lru_cache()
def get_config() -> Config:
    """Get application configuration.

    This function is cached to ensure we use the same configuration
    instance throughout the application lifecycle.

    Returns:
        Application configuration
    """
    return config


@lru_cache()
def get_encounter_store() -> EncounterStore:
    """Process-wide encounter store."""
    return EncounterStore(idle_timeout=config.encounter_idle_timeout)


async def get_http_client_dependency(
    config: Config = Depends(get_config)
) -> AsyncClient:
    """Get HTTP client for dependency injection.

    Args:
        config: Application configuration

    Returns:
        Shared HTTP client
    """
    return await get_http_client(config)


async def get_note_agent_service(
    config: Config = Depends(get_config),
    http_client: AsyncClient = Depends(get_http_client_dependency)
) -> NoteAgentService:
    """Get note agent service instance.

    Args:
        config: Application configuration
        http_client: Shared HTTP client

    Returns:
        Configured note agent service
    """
    return NoteAgentService(config=config, http_client=http_client)


async def get_tools_agent_service(
    config: Config = Depends(get_config),
    http_client: AsyncClient = Depends(get_http_client_dependency)
) -> ToolsAgentService:
    return ToolsAgentService(config=config, http_client=http_client)


async def get_encounter_workflow(
    store: EncounterStore = Depends(get_encounter_store),
    note_service: NoteAgentService = Depends(get_note_agent_service),
    tools_service: ToolsAgentService = Depends(get_tools_agent_service)
) -> EncounterWorkflow:
    """Get the encounter workflow bound to the shared store.

    Args:
        store: Encounter store
        note_service: Note agent service
        tools_service: Tools agent service, used for dictation

    Returns:
        Encounter workflow
    """
    return EncounterWorkflow(store=store, note_service=note_service, tools_service=tools_service)
