"""FastAPI application serving repository health analyses.

Endpoints:
    GET /api/health-check              Liveness probe.
    GET /api/analyze/{owner}/{repo}    Full AnalysisResult (camelCase JSON).
    GET /api/trending?language=        Most-starred repositories.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from osshealth import __version__
from osshealth.analyzers.github import RepositoryAccessDeniedError, RepositoryNotFoundError
from osshealth.analyzers.pipeline import AnalysisPipeline
from osshealth.config import Settings

logger = logging.getLogger(__name__)


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


def create_app(
    pipeline: AnalysisPipeline | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create the API application.

    Args:
        pipeline: Pipeline to serve from. When omitted, one is built from
            ``settings`` at startup and its HTTP client is closed on shutdown.
        settings: Settings used to build the pipeline. Defaults to the
            environment.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if pipeline is not None:
            app.state.pipeline = pipeline
            yield
            return

        resolved = settings or Settings.from_env()
        if not resolved.github_token:
            logger.warning("GITHUB_TOKEN is not set; GitHub rate limits will be low")
        async with AnalysisPipeline.from_settings(resolved) as owned:
            app.state.pipeline = owned
            yield

    app = FastAPI(title="OSS Health API", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health-check")
    async def health_check() -> dict:
        return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/api/analyze/{owner}/{repo}")
    async def analyze(owner: str, repo: str, request: Request):
        active: AnalysisPipeline = request.app.state.pipeline
        try:
            result = await active.analyze(owner, repo)
        except RepositoryNotFoundError as e:
            return _error(404, "Repository not found", str(e))
        except RepositoryAccessDeniedError as e:
            return _error(403, "Repository access denied", str(e))
        except Exception as e:
            logger.exception(f"Analysis of {owner}/{repo} failed")
            return _error(500, "Failed to analyze repository", str(e))
        return result.to_json_dict()

    @app.get("/api/trending")
    async def trending(request: Request, language: str | None = None):
        active: AnalysisPipeline = request.app.state.pipeline
        try:
            return await active.trending(language)
        except Exception as e:
            logger.exception("Fetching trending repositories failed")
            return _error(500, "Failed to fetch trending repositories", str(e))

    return app
