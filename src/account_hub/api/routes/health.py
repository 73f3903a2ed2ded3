"""Health and root endpoints.

The version string is read from ``account_hub.__version__``, resolved from the
installed package metadata.
"""

from fastapi import APIRouter

from account_hub import __version__
from account_hub.config import config

router = APIRouter()


@router.get("/")
async def root():
    """API identity and current version."""
    return {"message": "Account Hub API", "version": __version__}


@router.get("/health")
async def health_check():
    """Liveness check."""
    return {"status": "ok", "environment": config.security.environment}
