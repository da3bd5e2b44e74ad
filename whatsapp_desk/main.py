import os

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from whatsapp_desk.config import settings
from whatsapp_desk.database import Base, engine, get_db
from whatsapp_desk.logging_config import get_logger, setup_logging
from whatsapp_desk.models import Customer, Message
from whatsapp_desk.routers import admin, chats, office, webhook

setup_logging(settings.log_level)
logger = get_logger("main")

app = FastAPI(
    title="WhatsApp Desk",
    description="WhatsApp customer-service webhook and agent dashboard API",
    version="0.1.0",
)

cors_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def allow_any_origin(request: Request, call_next):
    # Dashboard clients call the API without an Origin header as well.
    response = await call_next(request)
    if "*" in cors_origins:
        response.headers["Access-Control-Allow-Origin"] = "*"
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = list(first.get("loc", ()))
        if location and location[0] in ("body", "query", "path", "header"):
            location = location[1:]
        field = ".".join(str(part) for part in location) or "request"
        message = str(first.get("msg", "invalid")).removeprefix("Value error, ")
        detail = f"{field}: {message}"
    else:
        detail = "request: invalid"
    return JSONResponse(status_code=400, content={"detail": detail})


app.include_router(webhook.router)
app.include_router(chats.router)
app.include_router(admin.router)
app.include_router(office.router)


@app.on_event("startup")
async def create_tables() -> None:
    if os.environ.get("PYTEST_CURRENT_TEST") or not settings.auto_create_tables:
        return
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/db-check")
def db_check(db: Session = Depends(get_db)):
    return {
        "status": "ok",
        "customers": db.query(Customer).count(),
        "messages": db.query(Message).count(),
    }


@app.get("/")
async def root():
    return {"name": "WhatsApp Desk", "version": "0.1.0"}
