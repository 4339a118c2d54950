from fastapi import FastAPI
from pydantic_settings import BaseSettings, SettingsConfigDict
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional
import logging

import uvicorn

from routers.api import router as api_router
from schemas import AppHealthOK
from bridge.service_manager import service_manager

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Process settings, overridable by BRIDGE_* environment variables."""
    model_config = SettingsConfigDict(env_prefix="BRIDGE_")

    app_name: str = "Sensor Data Bridge"
    debug: bool = False
    # Bridge configuration file, the bundled config/bridge_config.json when unset
    config_path: Optional[Path] = None
    log_level: str = "INFO"
    # When False, the API starts without connecting to TTN or the registries
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8000


settings = Settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup/shutdown without deprecated on_event."""
    logger.info("Starting bridge services (%s)", "connected" if settings.enabled else "offline")
    await service_manager.start_services(config_path=settings.config_path, connect=settings.enabled)

    try:
        yield
    finally:
        logger.info("Stopping bridge services")
        await service_manager.stop_services()


app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)


@app.get("/", tags=["meta"])
async def read_root() -> dict[str, str]:
    return {"message": settings.app_name}


@app.get("/health", tags=["meta"], response_model=AppHealthOK)
async def healthcheck() -> AppHealthOK:
    return AppHealthOK(status="ok", app=settings.app_name)


# mount API router under /api
app.include_router(api_router, prefix="/api")
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def run():
    logging.basicConfig(level=settings.log_level.upper(),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
