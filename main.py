# main.py
from dotenv import load_dotenv
load_dotenv()

import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.domain.errors import PipelineError
from app.presentation.schemas import ErrorResponse

# --- logging config HAS to come first ---
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
app_logger = logging.getLogger("lca.request")

from app import container
from app.presentation.routers import router as v1_router


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    orchestrator = container.started_orchestrator()
    if orchestrator is not None:
        app_logger.info("draining in-flight AI processing tasks")
        await orchestrator.drain()


app = FastAPI(
    title="LCA Product Ingest",
    version=os.getenv("APP_VERSION", "0.1.0"),
    lifespan=lifespan,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    app_logger.info(f"➡️ Incoming {request.method} {request.url.path}")
    try:
        response = await call_next(request)
        app_logger.info(f"⬅️ Completed {request.method} {request.url.path} -> {response.status_code}")
        return response
    except Exception:
        app_logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}")
        raise


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    app_logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    body = ErrorResponse(message=exc.message, details=exc.details)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))


# ─────────────────────────────────────────────────────────────
# CORS (env: CORS_ALLOW_ORIGINS="https://foo.com,https://bar.com")
# ─────────────────────────────────────────────────────────────
raw_origins = os.getenv("CORS_ALLOW_ORIGINS", "*")
allow_origins = [o.strip().rstrip("/") for o in raw_origins.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials="*" not in allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────
app.include_router(v1_router, tags=["products"])

@app.get("/")
async def root():
    return {
        "name": "LCA Product Ingest",
        "version": os.getenv("APP_VERSION", "0.1.0"),
        "ok": True,
    }

@app.get("/healthz")
async def healthz():
    # Liveness: process is up
    return {"ok": True}

@app.get("/readyz")
async def readyz():
    """
    Readiness:
    - Mongo ping
    - Redis ping
    - OPENAI_API_KEY present (classification)
    """
    checks = {}
    ok = True

    try:
        await container.get_repos().ping()
        checks["mongo"] = True
    except Exception as e:
        checks["mongo"] = False
        checks["mongo_error"] = str(e)
        ok = False

    try:
        checks["redis"] = await container.get_cache().ping()
        ok = ok and checks["redis"]
    except Exception as e:
        checks["redis"] = False
        checks["redis_error"] = str(e)
        ok = False

    checks["openai_configured"] = container.get_classifier().configured()

    return {"ok": ok, **checks}

@app.options("/{rest_of_path:path}")
async def any_options(rest_of_path: str):
    return Response(status_code=204)
