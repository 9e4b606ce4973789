"""Dependency injection for FastAPI endpoints"""

from fastapi import Request
from bdn_checkout.domain.repositories import CatalogRepository
from bdn_checkout.infrastructure.clients.catalog import CatalogClient


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_catalog() -> CatalogRepository:
    """Provide Catalog API client instance"""
    return CatalogClient()
