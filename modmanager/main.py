import logging

from fastapi import FastAPI

from modmanager.api.catalog import router as catalog_router
from modmanager.api.deploy import router as deploy_router
from modmanager.core.dependencies import get_chunk_store, get_data_dir, get_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Python Mod Manager",
    version="0.1.0",
    description="Package catalog cache and profile deployment service for BepInEx mod profiles.",
)


@app.on_event("startup")
async def startup_event() -> None:
    """
    Resolve the data directory, load (and persist) settings, and report
    what the chunk cache already holds.
    """
    data_dir = get_data_dir()
    settings = get_settings()
    files, size = get_chunk_store().stats()
    logger.info(f"Data directory: {data_dir}; catalog API: {settings.api_base_url}")
    logger.info(f"Chunk cache holds {files} chunks ({size} bytes)")


@app.get("/health")
async def health() -> dict:
    """
    Lightweight health check endpoint.
    """
    return {"status": "ok"}


app.include_router(catalog_router, tags=["catalog"])
app.include_router(deploy_router, tags=["deploy"])


if __name__ == "__main__":
    """
    Allow running `python -m modmanager.main` to start the Uvicorn development server.
    """
    import uvicorn

    uvicorn.run(
        "modmanager.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
