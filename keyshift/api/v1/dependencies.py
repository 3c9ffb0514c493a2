# File: keyshift/api/v1/dependencies.py
"""Dependency injection for API endpoints."""
from fastapi import Request

from ...config import Settings
from ...processing import TrackPipeline
from ...utils.track_registry import TrackRegistry


# === Dependency Providers ===
# Components are owned by the application (see app.create_app), not by module
# globals, so each app instance (and each test) gets its own.

async def settings_dep(request: Request) -> Settings:
    return request.app.state.settings


async def registry_dep(request: Request) -> TrackRegistry:
    return request.app.state.registry


async def pipeline_dep(request: Request) -> TrackPipeline:
    return request.app.state.pipeline
