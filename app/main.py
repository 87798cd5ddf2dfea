import logging

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session
from app.core.config import settings
from app.api.deps import get_db
from app.core.errors import RequisitionError
from app.api.routes.requisitions import router as requisitions_router
from app.api.routes.approvals import router as approvals_router
from app.api.routes.users import router as users_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# 1) Create the app FIRST
app = FastAPI(title="Requisition Approval Backend")

# 2) Add CORS Middleware BEFORE routes
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# 3) Workflow errors -> HTTP responses
@app.exception_handler(RequisitionError)
async def requisition_error_handler(request: Request, exc: RequisitionError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# 4) Include routers AFTER app is created
app.include_router(requisitions_router)
app.include_router(approvals_router)
app.include_router(users_router)


# 5) Health check endpoints
@app.get("/health")
def health():
    return {"ok": True, "service": "requisitions"}

@app.get("/db-health")
def db_health(db: Session = Depends(get_db)):
    db.execute(text("select 1"))
    return {"ok": True, "db": "connected"}
