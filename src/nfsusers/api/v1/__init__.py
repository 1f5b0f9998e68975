"""API v1 routers."""

from nfsusers.api.v1.health import router as health_router
from nfsusers.api.v1.volumes import router as volumes_router

__all__ = ["health_router", "volumes_router"]
