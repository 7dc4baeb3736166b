"""Health check payload."""

from typing import Literal

from vidtube.schemas.common import CamelModel

SERVICE_NAME = "vidtube-api"


class HealthStatus(CamelModel):
    service: str = SERVICE_NAME
    environment: str
    database: Literal["connected", "disconnected"]
