from fastapi import APIRouter, Request
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from gestioncartes.api.responses import StandardResponse, success
from gestioncartes.api.v1 import cartes, journal
from gestioncartes.config import get_settings

router = APIRouter()

# Include routers
router.include_router(journal.router)
router.include_router(cartes.router)


@router.get("/health", response_model=StandardResponse[dict])
async def health_check(request: Request):
    """
    Health check endpoint.

    Returns:
        Health status with environment, version, and database status
    """
    settings = get_settings()

    database_status = "unknown"
    database = getattr(request.app.state, "database", None)
    if database is None:
        database_status = "not_initialized"
        logger.warning("Database not initialized during health check")
    else:
        try:
            async with database.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            database_status = "healthy"
        except SQLAlchemyError as e:
            database_status = "unhealthy"
            logger.error("Database health check failed", error=str(e))

    logger.debug("Health check requested", database_status=database_status)

    return success({
        "status": "ok",
        "environment": settings.environment,
        "version": "0.1.0",
        "database_status": database_status,
    }, request_id=request.state.request_id)
