import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from vencura.config import settings
from vencura.core.deps import build_services
from vencura.database import AsyncSessionLocal, init_models
from vencura.errors import WalletError
from vencura.routers import auth, wallet

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Refuses to start on a missing/weak key secret or an unusable chain config
    app.state.services = build_services(settings, AsyncSessionLocal)
    if settings.AUTO_CREATE_TABLES:
        await init_models()
    logger.info("Vencura started in %s mode", app.state.services.selector.mode)
    yield
    await app.state.services.aclose()

app = FastAPI(title="Vencura Wallet API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(WalletError)
async def wallet_error_handler(request: Request, exc: WalletError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Unexpected error"})

app.include_router(auth.router)
app.include_router(wallet.router)
app.include_router(wallet.config_router)

@app.get("/health")
async def health(request: Request):
    services = getattr(request.app.state, "services", None)
    return {"status": "ok", "mode": services.selector.mode if services else None}
