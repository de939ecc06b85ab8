import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from dotenv import load_dotenv
load_dotenv()

from evv_service import config
from evv_service.attendance.router import router as attendance_router
from evv_service.credentials.router import cron_router, router as credentials_router
from evv_service.evv.router import router as evv_router
from evv_service.notifications.dispatcher import drain_pending_publishes, notification_publisher
from evv_service.reminders.router import router as reminders_router
from evv_service.scheduling.router import router as scheduling_router

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    logger.info("Flushing pending notifications before shutdown")
    await drain_pending_publishes()
    notification_publisher.close()


app = FastAPI(title="EVV Service", lifespan=lifespan)

app.include_router(attendance_router)
app.include_router(scheduling_router)
app.include_router(credentials_router)
app.include_router(cron_router)
app.include_router(reminders_router)
app.include_router(evv_router)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors as {"error": message} (dict details are passed through)"""
    body = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid input", "details": jsonable_encoder(exc.errors())},
    )


@app.get("/health")
def health():
    return {"status": "ok"}
