# gallerist/api/deps.py
# Request-scoped access to what create_app() built once at startup.
from typing import Dict

from fastapi import Request

from gallerist.adapters.base import BackendAdapter
from gallerist.core.config import Settings
from gallerist.services.catalog import CatalogCache


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_adapters(request: Request) -> Dict[str, BackendAdapter]:
    return request.app.state.adapters


def get_catalog_cache(request: Request) -> CatalogCache:
    return request.app.state.catalog_cache
