"""Health check for the VidTube API, including a database round trip."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from vidtube.core.config import get_settings
from vidtube.core.database import check_db_connected, get_db
from vidtube.schemas.common import ApiResponse
from vidtube.schemas.health import HealthStatus

router = APIRouter()


@router.get("/", response_model=ApiResponse[HealthStatus])
def get_health(db: Annotated[Session, Depends(get_db)]) -> ApiResponse[HealthStatus]:
    """Always 200; data.database reports whether SELECT 1 succeeded."""
    status = HealthStatus(
        environment=get_settings().APP_ENV,
        database="connected" if check_db_connected(db) else "disconnected",
    )
    return ApiResponse[HealthStatus](status_code=200, data=status, message="OK")
