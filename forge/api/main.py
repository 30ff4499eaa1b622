import os
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from forge.api.routers import api_router, ws_router
from forge.api.lifespan import lifespan
from forge.api.streaming import active_run_count


# Configure logging
log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

logger.info(f"🔧 API Logger initialized with level: {log_level}")


# Create FastAPI application
app = FastAPI(
    title="Design Forge API",
    description="""
    Reference-guided image generation backed by Gemini image models.

    This API provides endpoints for:
    - Streaming generation runs over server-sent events
    - Model tier capabilities
    - Diagnostic logs and a provider self-test
    - Generation history
    - Item catalog search, relayed through the host-application bridge when connected
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",  # Vite development server
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_origin_regex=r"https://.*\.(up\.railway\.app|highrise\.game)",
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error": str(exc) if os.getenv("ENV") == "development" else "An error occurred"
        }
    )


# Health check endpoint
@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint"""
    state = request.app.state
    config = getattr(state, "client_config", None)
    bridge = getattr(state, "bridge_manager", None)
    return {
        "status": "healthy",
        "service": "design-forge-api",
        "version": "1.0.0",
        "hasGeminiKey": bool(config and config.gemini_api_key),
        "bridgeConnected": bool(bridge and bridge.is_connected()),
        "activeRuns": active_run_count()
    }


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "message": "Design Forge API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "api": "/api/v1",
        "bridge": "/ws/bridge"
    }


# Include API routes
app.include_router(api_router)
app.include_router(ws_router)


if __name__ == "__main__":
    import uvicorn

    # Run with uvicorn for development
    uvicorn.run(
        "forge.api.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
        log_level="info"
    )
