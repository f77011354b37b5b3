from dotenv import load_dotenv
load_dotenv()

import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from database import build_repository

# ENV
from config.env import ENV, CORS_ALLOWED_ORIGINS, LOG_LEVEL, SNAPSHOT_BACKEND, validate_production_env

# ROUTES
from routes.auth import router as auth_router
from routes.users import router as users_router
from routes.pickups import router as pickups_router
from routes.products import router as products_router
from routes.orders import router as orders_router
from routes.stats import router as stats_router
from routes.admin import router as admin_router

# STORE
from utils.errors import HTTP_STATUS_BY_CODE, StoreError
from utils.store import CoordinationStore

# WORKERS
from workers.snapshot_worker import save_snapshot, snapshot_worker

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("trash2trade")

validate_production_env()
logger.info("ENV=%s SNAPSHOT_BACKEND=%s", ENV, SNAPSHOT_BACKEND)


# -----------------------------
# STARTUP / SHUTDOWN (ONE PLACE ONLY)
# -----------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    store = app.state.store
    repository = app.state.repository

    snapshot = await repository.load()
    if snapshot:
        await store.restore(snapshot)

    task = None
    if SNAPSHOT_BACKEND != "memory":
        task = asyncio.create_task(snapshot_worker(store, repository))

    yield

    if task:
        task.cancel()
        try:
            await save_snapshot(store, repository)
        except Exception:
            logger.exception("SNAPSHOT_SAVE_ERROR on shutdown")


app = FastAPI(
    title="Trash2Trade API",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=None if ENV == "production" else "/docs",
    redoc_url=None if ENV == "production" else "/redoc",
    openapi_url=None if ENV == "production" else "/openapi.json",
)

app.state.store = CoordinationStore()
app.state.repository = build_repository()

# -----------------------------
# CORS
# -----------------------------

allowed_origins = [origin.strip() for origin in CORS_ALLOWED_ORIGINS if origin.strip()]
if not allowed_origins:
    allowed_origins = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------------
# ERRORS
# -----------------------------

@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    status_code = HTTP_STATUS_BY_CODE.get(exc.code, 500)
    if status_code >= 500:
        logger.error("STORE_ERROR path=%s code=%s", request.url.path, exc.code)
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "error": jsonable_encoder(exc.to_dict())},
    )

# -----------------------------
# ROUTES
# -----------------------------

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(pickups_router)
app.include_router(products_router)
app.include_router(orders_router)
app.include_router(stats_router)
app.include_router(admin_router)

# -----------------------------
# HEALTH CHECKS
# -----------------------------

@app.get("/api/health")
async def health():
    return {"status": "ok"}
