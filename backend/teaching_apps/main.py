import asyncio
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from .db import Base, engine
from .cleanup import purge_idle_demo_sessions
from .settings import settings
from .routers import health, generate
from .routers import password_gate
from .routers import blockchain_demo
from .routers import app_data
from .routers import feedback

logger = logging.getLogger(__name__)

app = FastAPI(title="Teaching Apps API")
app.include_router(health.router)
app.include_router(password_gate.router)
app.include_router(blockchain_demo.router)
app.include_router(generate.router)
app.include_router(app_data.router)
app.include_router(feedback.router)

CLEANUP_INTERVAL_SECONDS = 15 * 60

_cleanup_task: Optional[asyncio.Task] = None


@app.get("/", include_in_schema=False)
async def redirect_root_to_docs():
	return RedirectResponse(url="/docs")

@app.get("/info")
def root():
	return {
		"status": "ok",
		"gemini_configured": bool(settings.gemini_api_key),
		"image_configured": bool(settings.image_api_key),
		"password_gate": bool(settings.app_password),
	}

async def _cleanup_watcher():
	while True:
		await asyncio.sleep(CLEANUP_INTERVAL_SECONDS)
		removed = purge_idle_demo_sessions()
		if removed:
			logger.info("Purged %d idle blockchain demo session(s)", removed)

@app.on_event("startup")
async def startup_event():
	global _cleanup_task
	Base.metadata.create_all(bind=engine)
	_cleanup_task = asyncio.create_task(_cleanup_watcher())
