import logging

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dispensary.dates import utcnow
from dispensary.errors import (
    InvalidTransition,
    NotFound,
    PermissionDenied,
    PersistenceError,
    ValidationError,
)
from dispensary.permissions import Actor, capabilities
from dispensary.service import LifecycleService
from dispensary.settings import API_DEBUG, API_HOST, API_PORT, settings
from dispensary.views import dashboard_summary
from .deps import get_actor, get_service

logging.basicConfig(
    level=logging.DEBUG if API_DEBUG else settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Dispensary API",
    version="0.1.0",
    description="HTTP layer over the pharmacy lifecycle service and its derived views.",
)

# --- CORS ----------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept",
                   "X-User-Id", "X-User-Role", "X-Pharmacy-Id"],
)

# --- Include Routers ----------------------------------------------------------
from .orders import router as orders_router
from .prescriptions import router as prescriptions_router
from .stock import router as stock_router

app.include_router(prescriptions_router)
app.include_router(orders_router)
app.include_router(stock_router)


# --- Error mapping ----------------------------------------------------------
# Local faults are shown verbatim; persistence faults hide adapter detail.
_STATUS_CODES = {
    NotFound: 404,
    PermissionDenied: 403,
    InvalidTransition: 409,
    ValidationError: 422,
}


def _local_fault(request: Request, exc: Exception) -> JSONResponse:
    status_code = _STATUS_CODES[type(exc)]
    logger.info(f"{request.method} {request.url.path} -> {status_code}: {exc}")
    return JSONResponse(status_code=status_code,
                        content={"error": type(exc).__name__, "detail": str(exc)})


for _exc_type in _STATUS_CODES:
    app.add_exception_handler(_exc_type, _local_fault)


@app.exception_handler(PersistenceError)
async def persistence_fault(request: Request, exc: PersistenceError):
    logger.error(f"{request.method} {request.url.path} store failure: {exc.__cause__ or exc}")
    return JSONResponse(
        status_code=503,
        content={"error": "PersistenceError",
                 "detail": "The record store is unavailable; please retry the action."},
    )


# ---------- health-check ----------
@app.get("/")
def root():
    return {"status": "ok", "msg": "Dispensary API is alive"}


# ---------- GET /dashboard ----------
@app.get("/dashboard")
def dashboard(svc: LifecycleService = Depends(get_service)):
    """Headline counts; zero counts are always present."""
    return dashboard_summary(
        svc.list_prescriptions(),
        svc.list_orders(),
        svc.list_stock(),
        svc.list_todos(),
        utcnow(),
    )


# ---------- GET /me ----------
@app.get("/me")
def whoami(actor: Actor = Depends(get_actor)):
    """The calling actor and the capabilities their role grants."""
    return {
        "user_id": actor.user_id,
        "role": actor.role.value,
        "pharmacy_id": actor.pharmacy_id,
        "capabilities": sorted(c.value for c in capabilities(actor.role)),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host=API_HOST, port=API_PORT, reload=API_DEBUG)
