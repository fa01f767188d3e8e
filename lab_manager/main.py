# lab_manager/main.py
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lab_manager.config import settings
from lab_manager.database import Database
from lab_manager.errors import AppError
from lab_manager.routers import auth, labs, classes, students, timetables, groups, coursework

import time
import logging
from lab_manager.logging_config import setup_logging


logger = logging.getLogger("app")


def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    ``database`` lets tests hand in their own engine; otherwise one is built
    from settings when the app starts and disposed when it stops.
    """
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = database or Database(
            settings.database_url,
            pool_size=settings.DB_POOL_SIZE,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
        )
        # create tables if missing
        db.create_all()
        app.state.db = db
        logger.info("Database ready")
        try:
            yield
        finally:
            if database is None:
                db.dispose()

    app = FastAPI(title="Lab Management Backend", version="1.0.0", lifespan=lifespan)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.time()
        try:
            response = await call_next(request)
            ms = int((time.time() - start) * 1000)
            logger.info("%s %s -> %s (%dms)", request.method, request.url.path, response.status_code, ms)
            return response
        except Exception:
            ms = int((time.time() - start) * 1000)
            logger.exception("Unhandled error %s %s (%dms)", request.method, request.url.path, ms)
            raise

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(auth.router)
    app.include_router(labs.router)
    app.include_router(classes.router)
    app.include_router(students.router)
    app.include_router(timetables.router)
    app.include_router(groups.router)
    app.include_router(coursework.router)

    @app.get("/")
    def root():
        return {"message": "Lab backend is running!"}

    return app


app = create_app()
