from fastapi import FastAPI

from app.api import get_api_router
from core.config import get_settings
from core.logging import configure_logging

configure_logging(get_settings().log_level)

app = FastAPI(title="Recurrence Rule Engine", version="0.1.0")

# Include API routes
app.include_router(get_api_router())


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}

