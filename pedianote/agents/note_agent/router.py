"""Router for note agent status."""

from fastapi import APIRouter, Depends
from loguru import logger

from ...core.dependencies import get_config, get_note_agent_service
from ...core.config import Config
from ...core.schemas import HealthCheckResponse
from .service import NoteAgentService

router = APIRouter(
    prefix="/notes",
    tags=["Note Generation"]
)


@router.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Service Health Check",
    description="Get detailed health status of the note generation service"
)
async def health_check(
    service: NoteAgentService = Depends(get_note_agent_service),
    config: Config = Depends(get_config)
) -> HealthCheckResponse:
    """Get detailed health status of the note agent service.

    Reports whether a credential is configured; agents themselves are only
    built on first use.

    Args:
        service: Note agent service (injected)
        config: Application configuration (injected)

    Returns:
        Detailed health check response
    """
    try:
        status_info = service.get_service_status()

        return HealthCheckResponse(
            status=status_info["status"] if status_info["api_key_configured"] else "degraded",
            service="note_agent",
            version=config.service_version,
            model_loaded=status_info["api_key_configured"],
            uptime=status_info["uptime"]
        )

    except Exception as e:
        logger.error(f"Health check failed: {str(e)}")
        return HealthCheckResponse(
            status="unhealthy",
            service="note_agent",
            version=config.service_version,
            model_loaded=False
        )
