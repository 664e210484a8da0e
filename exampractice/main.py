from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from exampractice.core.config import CORS_ORIGINS, LOG_LEVEL
from exampractice.core.database import close_db, init_db
from exampractice.core.errors import ExamPracticeError
from exampractice.api.auth import router as auth_router
from exampractice.api.catalog import router as catalog_router
from exampractice.api.questions import router as questions_router
from exampractice.api.exams import router as exams_router
from exampractice.api.materials import router as materials_router
from exampractice.api.ai import router as ai_router

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Exam Practice API...")
    init_db()
    yield
    close_db()
    logger.info("Shutdown complete")

app = FastAPI(title="Exam Practice API", version="1.0.0", lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=CORS_ORIGINS, allow_credentials=True, allow_methods=["*"], allow_headers=["*"])
app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
app.include_router(catalog_router, prefix="/api", tags=["catalog"])
app.include_router(questions_router, prefix="/api/questions", tags=["questions"])
app.include_router(exams_router, prefix="/api/exams", tags=["exams"])
app.include_router(materials_router, prefix="/api/materials", tags=["materials"])
app.include_router(ai_router, prefix="/api/ai", tags=["ai"])

@app.exception_handler(ExamPracticeError)
async def domain_exception_handler(request: Request, exc: ExamPracticeError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=getattr(exc, "headers", None))

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Malformed request body", "details": jsonable_errors(exc)}
    )

def jsonable_errors(exc: RequestValidationError):
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": "An internal error occurred"})

@app.get("/health")
def health(): return {"status": "ok"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("exampractice.main:app", host="0.0.0.0", port=8000, log_level=LOG_LEVEL.lower())
