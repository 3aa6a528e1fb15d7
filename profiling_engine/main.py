import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from profiling_engine import __version__
from profiling_engine.api.router import api_router
from profiling_engine.config import settings
from profiling_engine.services.container import ProfilingEngine, build_engine

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(engine: Optional[ProfilingEngine] = None) -> FastAPI:
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Profiling Engine",
        version=__version__,
        description="CSV dataset profiling: column classification, statistics and async profiling jobs",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    app.state.engine = engine or build_engine(settings)

    @app.on_event("startup")
    async def _startup():
        await app.state.engine.start()

    @app.on_event("shutdown")
    async def _shutdown():
        # Stop workers and close pools/clients to avoid dangling connections on redeploy.
        await app.state.engine.stop()

    @app.get("/health")
    async def health():
        return {"ok": True, "version": __version__}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
