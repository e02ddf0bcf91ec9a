from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from omnitutor.config import settings
from omnitutor.database import KeyValueStore, SqliteKeyValueStore, init_db
from omnitutor.errors import TutorError
from omnitutor.logging_utils import configure_logging
from omnitutor.routes import auth, chat, courses, folders, materials, synthesis
from omnitutor.routes.deps import status_for
from omnitutor.services.courses import CourseCatalog
from omnitutor.services.storage import StorageService
from omnitutor.services.tutor import TutorService
from omnitutor.services.workspace import WorkspaceRegistry


def create_app(kv: KeyValueStore | None = None, tutor: TutorService | None = None) -> FastAPI:
    """Build the API. Tests pass an in-memory store and a fake tutor."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create the SQLite table on startup; close live workspaces on shutdown."""
        configure_logging(settings.log_level)
        if kv is None:
            await init_db()
        yield
        app.state.workspaces.close()

    app = FastAPI(
        title="omnitutor",
        description="Course workspaces with AI-summarised materials and a grounded chat tutor",
        version="0.1.0",
        lifespan=lifespan,
    )

    storage = StorageService(kv if kv is not None else SqliteKeyValueStore())
    catalog = CourseCatalog(storage)
    app.state.storage = storage
    app.state.catalog = catalog
    app.state.workspaces = WorkspaceRegistry(storage, catalog, tutor or TutorService())

    @app.exception_handler(TutorError)
    async def tutor_error_handler(_request: Request, exc: TutorError) -> JSONResponse:
        return JSONResponse(status_code=status_for(exc), content={"detail": str(exc)})

    app.include_router(auth.router)
    app.include_router(courses.router)
    app.include_router(folders.router)
    app.include_router(materials.router)
    app.include_router(chat.router)
    app.include_router(synthesis.router)

    @app.get("/")
    async def health() -> dict:
        return {"status": "ok"}

    return app


def run() -> None:
    uvicorn.run("omnitutor.main:create_app", factory=True, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
