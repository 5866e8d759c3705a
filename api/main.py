from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv

# Explicitly load the .env at the project root
project_root = Path(__file__).parent.parent
env_path = project_root / ".env"
if env_path.exists():
    load_dotenv(env_path)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from billing.settings import get_billing_settings
from ingestion.settings import get_settings
from ingestion.utils.logging import configure_logging

from .database import init_db
from .routes import router

_settings = get_settings()
configure_logging(_settings.structlog_level, json_enabled=_settings.log_json)
logging.getLogger(__name__).info("api.start", extra={"env_file": str(env_path) if env_path.exists() else None})

app = FastAPI(title="Influencer Market Signals API", version="0.1.0")

init_db()

app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_billing_settings().public_base_url, "http://127.0.0.1:3000"],
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)

app.include_router(router)


@app.get("/healthz", tags=["system"])
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
