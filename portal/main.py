from fastapi import FastAPI
import logging

from portal.api.routes import router
from portal.session_runner import sessions

app = FastAPI(title="portal-flow", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=logging.DEBUG)
logger = logging.getLogger(__name__)


@app.on_event("shutdown")
async def _shutdown() -> None:
    # Live sessions are bound to this process's event loop.
    await sessions.cancel_all()


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "portal-flow", "version": "0.1.0"}
