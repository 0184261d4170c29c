"""Flask application factory for the SourceLens API."""

import uuid

import structlog
from flask import Flask, Response, g, request

from src.features.api.routes import SERVICE_EXTENSION_KEY, api, register_error_handlers
from src.features.api.service import SourceLensService
from src.features.api.upload import MAX_UPLOAD_BYTES
from src.features.llm.factory import ClientFactory, settings_client_factory
from src.observability.logging import bind_request_context, clear_request_context
from src.settings import AppSettings, get_settings


logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"

# Multipart framing overhead on top of the raw file size.
_MULTIPART_OVERHEAD_BYTES = 64 * 1024


def create_app(
    settings: AppSettings | None = None,
    client_factory: ClientFactory | None = None,
) -> Flask:
    """Create and configure the API application.

    Args:
        settings: Application settings. Loaded from the environment when
            omitted.
        client_factory: Maps a model configuration to an LLM client.
            Defaults to a factory backed by the configured API keys.

    Returns:
        Configured Flask application.
    """
    settings = settings or get_settings()
    factory = client_factory or settings_client_factory(settings)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = MAX_UPLOAD_BYTES + _MULTIPART_OVERHEAD_BYTES
    app.json.sort_keys = False  # type: ignore[attr-defined]
    app.extensions[SERVICE_EXTENSION_KEY] = SourceLensService(factory)

    @app.before_request
    def _bind_request() -> None:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        g.request_id = request_id
        bind_request_context(request_id)

    @app.after_request
    def _tag_response(response: Response) -> Response:
        request_id = g.get("request_id")
        if request_id:
            response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "request_completed",
            component="api",
            method=request.method,
            path=request.path,
            status=response.status_code,
        )
        return response

    @app.teardown_request
    def _clear_request(_exc: BaseException | None) -> None:
        clear_request_context()

    register_error_handlers(app)
    app.register_blueprint(api)

    logger.info(
        "api_app_created",
        component="api",
        api_url=settings.api_url,
    )
    return app
