"""
HTTP surface of the documentation viewer.

Routes:
    /                              default renderer
    /scalar, /redoc                a specific renderer (404 when not enabled)
    /specs/{namespace}/{service}   parsed spec of one API as JSON
    /api/{namespace}/{service}     alias of the above
    /specs/{api_name}              lookup by display name
    /api/{api_name}                alias of /specs/{api_name}
    /health                        liveness
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import Any

import yaml
from fastapi import FastAPI, HTTPException
from fastapi.responses import HTMLResponse

from ..config import ViewerSettings
from ..models import parse_spec_to_json
from .cache import CatalogueCache
from .renderers import DocRenderer, RendererRegistry, api_infos, create_template_environment

logger = logging.getLogger(__name__)


def create_app(
    settings: ViewerSettings | None = None,
    cache: CatalogueCache | None = None,
    registry: RendererRegistry | None = None,
) -> FastAPI:
    settings = settings or ViewerSettings()
    cache = cache or CatalogueCache(settings.discovery_path)
    registry = registry or RendererRegistry.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cache.refresh()
        refresher = asyncio.create_task(cache.run(settings.refresh_interval))
        logger.info(f"Using discovery path: {settings.discovery_path}")
        try:
            yield
        finally:
            refresher.cancel()
            with suppress(asyncio.CancelledError):
                await refresher

    app = FastAPI(title="OpenAPI Documentation", lifespan=lifespan)
    app.state.cache = cache
    app.state.registry = registry

    def render(renderer: DocRenderer) -> HTMLResponse:
        entries = cache.entries()
        logger.debug(f"Rendering {len(entries)} APIs with {renderer.name}")
        return HTMLResponse(renderer.render_catalogue(api_infos(entries)))

    @app.get("/", response_class=HTMLResponse)
    async def handle_default() -> HTMLResponse:
        renderer = registry.default
        if renderer is None:
            logger.error("No default frontend configured")
            template = create_template_environment().get_template("error.html")
            return HTMLResponse(template.render(), status_code=500)
        return render(renderer)

    def frontend_route(name: str):
        async def handle_frontend() -> HTMLResponse:
            renderer = registry.get(name)
            if renderer is None:
                logger.warning(f"{name} frontend not available")
                raise HTTPException(status_code=404, detail=f"{name} frontend not enabled")
            return render(renderer)

        return handle_frontend

    app.add_api_route("/scalar", frontend_route("scalar"), response_class=HTMLResponse)
    app.add_api_route("/redoc", frontend_route("redoc"), response_class=HTMLResponse)

    def spec_response(entry, label: str) -> Any:
        if entry is None:
            logger.warning(f"API spec not found: {label}")
            return {"error": "API not found"}

        try:
            return parse_spec_to_json(entry.spec)
        except (ValueError, yaml.YAMLError) as e:
            logger.warning(f"Failed to parse spec for {label}: {e}")
            return {"error": "Failed to parse API spec"}

    @app.get("/specs/{namespace}/{service_name}")
    async def handle_service_spec_request(namespace: str, service_name: str) -> Any:
        entry = cache.get_by_key(namespace, service_name)
        return spec_response(entry, f"{namespace}/{service_name}")

    @app.get("/api/{namespace}/{service_name}")
    async def handle_service_api_request(namespace: str, service_name: str) -> Any:
        return await handle_service_spec_request(namespace, service_name)

    @app.get("/specs/{api_name}")
    async def handle_spec_request(api_name: str) -> Any:
        return spec_response(cache.get(api_name), api_name)

    @app.get("/api/{api_name}")
    async def handle_api_request(api_name: str) -> Any:
        return await handle_spec_request(api_name)

    @app.get("/health")
    async def handle_health() -> dict[str, str]:
        return {"status": "healthy"}

    return app
