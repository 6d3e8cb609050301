"""Health check endpoint with database connectivity check (no token required)."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from creds.core.config import settings
from creds.core.database import check_db_connected, get_db
from creds.schemas.health import HealthResponse

router = APIRouter()


@router.get("/", response_model=HealthResponse)
def get_health(db: Annotated[Session, Depends(get_db)]) -> HealthResponse:
    """
    Report whether the database is reachable. Every token check reads it, so while it
    is down all authorized routes answer 401 or 500.
    """
    db_status = "connected" if check_db_connected(db) else "disconnected"

    return HealthResponse(
        status="ok",
        environment=settings.APP_ENV,
        database=db_status,
    )
