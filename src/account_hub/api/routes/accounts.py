"""Account registration endpoint (called by the web frontend)."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from account_hub.api.models import RegisterRequest, RegisterResponse
from account_hub.api.security import require_web_secret
from account_hub.db.errors import DatabaseError
from account_hub.services.accounts import register_account
from account_hub.services.hub import AccountHub
from account_hub.services.ranking import SkillCatalogError

logger = logging.getLogger(__name__)

REGISTRATION_STATUS = {
    "invalid_username": 400,
    "invalid_password": 400,
    "invalid_email": 400,
    "username_taken": 409,
    "email_taken": 409,
}


def router(hub: AccountHub) -> APIRouter:
    """Build the account router."""
    api = APIRouter(prefix="/api/auth")

    @api.post(
        "/register",
        response_model=RegisterResponse,
        dependencies=[Depends(require_web_secret)],
    )
    def register(body: RegisterRequest):
        """Create an account and bootstrap it for every persistence group."""
        try:
            result = register_account(
                body.username,
                body.password,
                email=body.email,
                display_name=body.display_name,
                bootstrapper=hub.bootstrapper,
            )
        except (DatabaseError, SkillCatalogError) as exc:
            logger.exception("Registration failed for %r", body.username)
            raise HTTPException(status_code=500, detail="Internal server error") from exc

        if not result.success:
            raise HTTPException(
                status_code=REGISTRATION_STATUS.get(result.reason, 400), detail=result.message
            )
        return RegisterResponse(success=True, message=result.message, user_id=result.account_id)

    return api
