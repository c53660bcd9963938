from contextlib import asynccontextmanager

from fastapi import FastAPI
from pos_outbox.api.v1.routes_device import router as device_router
from pos_outbox.api.v1.routes_print_jobs import router as print_jobs_router
from pos_outbox.api.v1.routes_sync import router as sync_router
from pos_outbox.core.config import settings
from pos_outbox.core.logging_config import configure_logging
from pos_outbox.db.base import AsyncSessionLocal, Base, RemoteBase, RemoteSessionLocal, engine, remote_engine
from pos_outbox.runtime import build_runtime, create_schema, reflect_remote_tables


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL, settings.LOG_FILE)
    await create_schema(engine, Base.metadata)
    await create_schema(remote_engine, RemoteBase.metadata)
    remote_metadata = await reflect_remote_tables(remote_engine)

    runtime = build_runtime(settings, AsyncSessionLocal, RemoteSessionLocal, remote_metadata)
    await runtime.start(settings.PENDING_CHECK_INTERVAL_SECONDS)
    app.state.runtime = runtime

    # the device's printer adapter is attached by the deployment before startup
    printer = getattr(app.state, "local_printer", None)
    if printer is not None and settings.DEFAULT_TENANT_ID:
        await runtime.start_print_server(
            printer,
            settings.DEFAULT_TENANT_ID,
            poll_interval=settings.PRINT_QUEUE_POLL_INTERVAL_SECONDS,
        )
    try:
        yield
    finally:
        await runtime.stop()
        await engine.dispose()
        await remote_engine.dispose()


app = FastAPI(lifespan=lifespan)

app.include_router(sync_router)
app.include_router(print_jobs_router)
app.include_router(device_router)

@app.get("/health")
async def health():
    return {"status": "ok"}
