import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

router = APIRouter()

logger = logging.getLogger("reve.health")

HEALTH_RESPONSE = {"ok": True, "status": "ok"}


@router.get(
    "/health",
    tags=["Monitoring"],
    summary="Health check endpoint",
    include_in_schema=False,
)
@router.get(
    "/healthz",
    tags=["Monitoring"],
    summary="Kubernetes style health check endpoint",
    include_in_schema=False,
)
async def health_check():
    return JSONResponse(HEALTH_RESPONSE, status_code=status.HTTP_200_OK)
