"""Reusable FastAPI dependencies."""

from fastapi import Request

from tradie_market.core.container import ApplicationContainer
from tradie_market.services.marketplace import MarketplaceCreditService


def get_container(request: Request) -> ApplicationContainer:
    return request.app.state.container


def get_marketplace(request: Request) -> MarketplaceCreditService:
    return get_container(request).marketplace


__all__ = [
    "get_container",
    "get_marketplace",
]
