"""FastAPI application entry point for the page resolver API."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import os
from server.api.routers.PageRouter import page_router
from services.page_update.PipelineService import PipelineService
from shared.clients.cms.CMSClientManager import CMSClientManager
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


def create_app(transport: httpx.AsyncBaseTransport | None = None) -> FastAPI:
    """Build the application. A transport replaces the network for every CMS client (tests)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage application startup and shutdown."""
        app.state.logging = setup_logging()
        app.state.config = HelperConfig(logger=app.state.logging)

        # fail before accepting requests when the key is missing
        app.state.config.get_string_val("APP_API_KEY")

        # Initialise client
        cms_client = CMSClientManager(helper_config=app.state.config).get_client()
        await cms_client.boot(transport=transport)

        # Health check
        await cms_client.do_healthcheck()

        # Wire up services
        app.state.pipeline = PipelineService(
            helper_config=app.state.config,
            cms_client=cms_client,
            transport=transport,
        )

        app.state.logging.info("Page resolver API ready on %s.", cms_client.get_base_url())
        yield

        # Shutdown
        await cms_client.close()
        app.state.logging.info("Page resolver API shut down.")

    app = FastAPI(
        title="Page Resolver",
        description="Resolves loosely named site pages and writes their content.",
        version=app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(page_router)
    return app


app = create_app()


# Server Start
if __name__ == "__main__":
    # start server
    import uvicorn
    logging.info(f"Starting Page Resolver API Server v{app_version} from root dir: {os.getenv('ROOT_DIR', os.getcwd())} on port 8000...")
    uvicorn.run(app, host="0.0.0.0", port=8000)
