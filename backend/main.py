from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.viewport import (
    ApiRetryRequest,
    ApiViewportRequest,
    SessionRegistry,
    handle_retry,
    handle_viewport,
)
from telemetry.logs import configure_logging
from telemetry.singleton import get_store

configure_logging()

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

sessions = SessionRegistry()


@app.post("/viewport")
async def viewport(body: ApiViewportRequest):
    return await handle_viewport(sessions, body)


@app.post("/viewport/retry")
async def viewport_retry(body: ApiRetryRequest):
    return await handle_retry(sessions, body)


@app.get("/telemetry/summary")
def telemetry_summary():
    store = get_store()
    if store is None:
        return {"enabled": False, "summary": [], "recentErrors": []}
    return {
        "enabled": True,
        "summary": store.summary(),
        "recentErrors": store.recent_errors(limit=10),
    }
