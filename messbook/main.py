from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from messbook.core.config import settings
from messbook.core.exceptions import MessbookError
from messbook.core.logging import configure_logging, get_logger
from messbook.db.mongo import connect_to_mongo, close_mongo_connection
from messbook.routes import deposits, expenses, meals, reports

configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await connect_to_mongo()
    yield
    await close_mongo_connection()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    description=settings.DESCRIPTION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MessbookError)
async def messbook_error_handler(request: Request, exc: MessbookError):
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, code=exc.code, error=exc.message)
    else:
        logger.info("request_rejected", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code}
    )


@app.get("/")
async def root():
    return {"message": "Welcome to Messbook API"}


api_router = APIRouter()
api_router.include_router(reports.router)
api_router.include_router(meals.router)
api_router.include_router(deposits.router)
api_router.include_router(expenses.router)

app.include_router(api_router, prefix=settings.API_V1_STR)
