import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from forge.api.bridge import bridge_manager
from forge.api import database
from forge.api.database import create_db_and_tables, init_engine, persist_generation
from forge.core.client_config import get_client_config
from forge.core.item_catalog import ItemCatalogClient
from forge.pipeline.orchestrator import GenerationOrchestrator
import logging

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events - startup and shutdown."""
    # Startup
    logger.info("🚀 Starting Design Forge API...")

    config = get_client_config(os.getenv("FORGE_ENV_PATH"))
    app.state.client_config = config

    init_engine(config.database_url)
    await create_db_and_tables()
    logger.info("Database tables created/verified")

    try:
        gemini_client = config.get_clients().get("gemini_client")
        if gemini_client is not None:
            app.state.orchestrator = GenerationOrchestrator(gemini_client)
            logger.info("✅ Generation orchestrator initialized successfully")
        else:
            app.state.orchestrator = None
            logger.warning("⚠️ No Gemini client configured - generation requests will return an error event")

        app.state.bridge_manager = bridge_manager
        app.state.catalog_client = ItemCatalogClient(
            api_base=config.catalog_api_base,
            cdn_base=config.catalog_cdn_base,
            bridge=bridge_manager,
        )
        app.state.generation_recorder = persist_generation
        logger.info("✅ Item catalog client initialized")

        client_summary = config.get_client_summary()
        configured_count = sum(1 for status in client_summary.values() if "✅" in status)
        logger.info(f"📊 Client configuration: {configured_count}/{len(client_summary)} clients configured")

    except Exception as e:
        logger.error(f"❌ Failed to initialize application state: {e}")
        raise

    logger.info("🎉 Application startup completed successfully")

    yield

    # Shutdown
    logger.info("🛑 Shutting down Design Forge API...")
    gemini_client = app.state.client_config.get_clients().get("gemini_client")
    if gemini_client is not None:
        gemini_client.close()
    await database.engine.dispose()
    logger.info("✅ Application shutdown completed")
