"""Health check endpoint."""

from fastapi import APIRouter
from pydantic import BaseModel

from nfsusers import __version__
from nfsusers.config import get_config

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    provisioner: str


@router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    return HealthResponse(status="healthy", version=__version__, provisioner=get_config().name)
