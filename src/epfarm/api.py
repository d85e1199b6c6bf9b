"""Read-only status API for the external monitor."""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, FastAPI, HTTPException, Request, status

from epfarm import __version__
from epfarm.config import Settings, get_settings
from epfarm.errors import PersistenceFailure
from epfarm.ports.repositories import PredictionRepository
from epfarm.utils.logger import get_logger
from epfarm.utils.now import Now

logger = get_logger(__name__)

_HEALTH_SERVICE = "epfarm"


def _extract_api_token(request: Request) -> str | None:
    """Return bearer token or API key from the request headers."""
    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip()
    api_key = request.headers.get("x-api-key")
    if api_key:
        return api_key.strip()
    return None


def _open_read_only(settings: Settings) -> PredictionRepository:
    from epfarm.app.wiring import build_repository  # noqa: PLC0415

    return build_repository(settings, read_only=True)


def create_app(
    settings: Settings | None = None,
    repository_factory: Callable[[Settings], PredictionRepository] | None = None,
) -> FastAPI:
    """Build the status API.

    Args:
        settings: Settings to use; read from the environment when omitted.
        repository_factory: Builds the repository the endpoints read from.

    Returns:
        Configured FastAPI application.
    """

    active_settings = settings or get_settings()
    factory = repository_factory or _open_read_only
    repository_holder: dict[str, PredictionRepository] = {}

    def repository() -> PredictionRepository:
        if "repo" not in repository_holder:
            repository_holder["repo"] = factory(active_settings)
        return repository_holder["repo"]

    def require_api_token(request: Request) -> None:
        """Raise HTTP 401 when the request token is missing or invalid."""
        if request.url.path == "/api/health":
            return
        supplied = _extract_api_token(request)
        if not supplied or supplied != active_settings.api_token:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    app = FastAPI(
        title="EPFARM",
        version=__version__,
        dependencies=[Depends(require_api_token)],
    )

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {
            "status": "ok",
            "service": _HEALTH_SERVICE,
            "version": __version__,
            "timestamp": Now.as_datetime().isoformat(),
        }

    @app.get("/api/workers")
    def workers() -> dict[str, object]:
        try:
            rows = repository().fetch_worker_statuses()
        except PersistenceFailure as exc:
            logger.warning("Worker status query failed: %s", exc)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Storage unavailable"
            ) from exc
        return {"workers": rows}

    @app.get("/api/accuracy")
    def accuracy() -> dict[str, object]:
        try:
            return repository().fetch_accuracy_summary()
        except PersistenceFailure as exc:
            logger.warning("Accuracy query failed: %s", exc)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Storage unavailable"
            ) from exc

    return app
