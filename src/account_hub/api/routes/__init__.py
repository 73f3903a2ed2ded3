"""
Route registration entry point for the FastAPI application.

Each router module exposes ``router(hub)`` returning an ``APIRouter`` bound to
the shared service container.
"""

from fastapi import FastAPI

from account_hub.api.routes import accounts, health, hiscores, login, presence, worlds
from account_hub.services.hub import AccountHub


def register_routes(app: FastAPI, hub: AccountHub) -> None:
    """Register all API routes with the FastAPI app."""
    app.include_router(health.router)
    app.include_router(login.router(hub))
    app.include_router(worlds.router(hub))
    app.include_router(presence.router(hub))
    app.include_router(accounts.router(hub))
    app.include_router(hiscores.router(hub))
