import asyncio
import contextlib
import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bookreader import __version__
from bookreader.config import get_settings
from bookreader.routers import books, images, uploads, users
from bookreader.routers.dependencies import (
    UploadAssemblerDep,
    get_library_service,
    get_upload_assembler,
)
from bookreader.services.upload_assembler import sweep_periodically

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Prepare storage and run the abandoned-upload sweeper while serving."""
    get_library_service().ensure_storage()
    logger.info(f"User books will be stored in: {settings.user_books_dir}")

    sweeper = asyncio.create_task(
        sweep_periodically(
            get_upload_assembler(), settings.upload_sweep_interval_seconds
        )
    )
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper


app = FastAPI(title="BookReader API", version=__version__, lifespan=lifespan)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = datetime.now()
    logger.info(f">>> Incoming request: {request.method} {request.url.path}")

    try:
        response = await call_next(request)
        duration = (datetime.now() - start_time).total_seconds()
        logger.info(
            f"<<< Response: {request.method} {request.url.path} - Status: {response.status_code} - Duration: {duration:.3f}s"
        )
        return response
    except Exception as e:
        duration = (datetime.now() - start_time).total_seconds()
        logger.error(
            f"!!! Request failed: {request.method} {request.url.path} - Duration: {duration:.3f}s - Error: {str(e)}",
            exc_info=True,
        )
        return JSONResponse(
            status_code=500, content={"detail": f"Internal server error: {str(e)}"}
        )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def read_root():
    logger.info("Root endpoint accessed")
    return {"message": "BookReader API", "status": "running"}


@app.get("/health")
async def health_check(assembler: UploadAssemblerDep):
    return {
        "status": "healthy",
        "pending_uploads": assembler.pending_count(),
    }


# Include routers
app.include_router(books.router)
app.include_router(images.router)
app.include_router(uploads.router)
app.include_router(users.router)

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
