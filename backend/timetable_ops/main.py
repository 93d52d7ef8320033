from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from timetable_ops.api.routes import bulk_operations, health
from timetable_ops.core.config import get_settings
from timetable_ops.core.exceptions import AppError
from timetable_ops.core.logging import setup_logging
from timetable_ops.db.bootstrap import ensure_runtime_schema
from timetable_ops.db.session import build_engine, create_session_factory, tracking_database_url

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(environment=settings.environment, log_file=settings.log_file)
    tracking_url = tracking_database_url(settings.database_url, settings.operations_database_url)
    engine = build_engine(settings.database_url)
    operations_engine = build_engine(tracking_url) if tracking_url else engine
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.operations_session_factory = create_session_factory(operations_engine)
    try:
        ensure_runtime_schema(engine, create_missing=settings.auto_create_schema)
        if operations_engine is not engine:
            # A derived SQLite tracking file is never migrated, so create it here.
            derived = not settings.operations_database_url
            ensure_runtime_schema(operations_engine, create_missing=settings.auto_create_schema or derived)
        yield
    finally:
        if operations_engine is not engine:
            operations_engine.dispose()
        engine.dispose()


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "details": exc.details},
    )


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(
    bulk_operations.router,
    prefix=f"{settings.api_prefix}/timetable/bulk-operations",
    tags=["bulk-operations"],
)
