from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from dotenv import load_dotenv

# Ensure .env values are loaded even if uvicorn is launched without `dotenv run`.
# Use override=True so editing `.env` (and restarting uvicorn) reliably takes effect even if
# older values exist in the environment from a previous shell/session.
# Loaded before the route imports: some of them read env at import time.
load_dotenv(override=True)

from app.routes import admin, jobs, payments  # noqa: E402
from core.database import init_db  # noqa: E402


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="BravaPress job queue", lifespan=lifespan)


app.include_router(jobs.router)
app.include_router(admin.router)
app.include_router(payments.router)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    response.headers.setdefault("Cache-Control", "no-store")
    response.headers.setdefault("Content-Security-Policy", "default-src 'none'; frame-ancestors 'none'")
    return response
