"""Flask blueprint exposing the SourceLens analysis endpoints."""

from typing import Any

import structlog
from flask import Blueprint, current_app, jsonify, request
from flask.typing import ResponseReturnValue
from werkzeug.exceptions import MethodNotAllowed, RequestEntityTooLarge

from src.features.api.errors import RequestValidationError, UnsupportedFileTypeError
from src.features.api.schemas import (
    DraftSummaryRequest,
    HighlightRequest,
    InfoExtractionRequest,
    MetadataExtractionRequest,
    RoleplayRequest,
    SourceAnalysisRequest,
    TranslationRequest,
    WikiOverviewRequest,
    parse_body,
)
from src.features.api.service import SourceLensService
from src.features.api.upload import MAX_UPLOAD_BYTES, extract_upload_text
from src.features.llm.errors import LlmApiError, LlmAuthError, LlmProcessingError
from src.features.llm.models import MODELS


logger = structlog.get_logger()

SERVICE_EXTENSION_KEY = "sourcelens.service"

api = Blueprint("api", __name__, url_prefix="/api")


def _service() -> SourceLensService:
    service: SourceLensService = current_app.extensions[SERVICE_EXTENSION_KEY]
    return service


def _json_body() -> Any:
    return request.get_json(silent=True)


@api.errorhandler(RequestValidationError)
def _handle_validation_error(exc: RequestValidationError) -> ResponseReturnValue:
    return jsonify({"message": str(exc)}), 400


@api.errorhandler(UnsupportedFileTypeError)
def _handle_unsupported_file(exc: UnsupportedFileTypeError) -> ResponseReturnValue:
    return jsonify({"message": str(exc)}), 415


@api.errorhandler(LlmAuthError)
@api.errorhandler(LlmApiError)
@api.errorhandler(LlmProcessingError)
def _handle_llm_error(
    exc: LlmAuthError | LlmApiError | LlmProcessingError,
) -> ResponseReturnValue:
    logger.error(
        "llm_request_failed",
        component="api",
        subcomponent="routes",
        endpoint=request.path,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    return jsonify({"message": "Error processing request", "error": str(exc)}), 500


def register_error_handlers(app: Any) -> None:
    """Register app-wide JSON handlers for routing errors.

    Method and body-size errors are raised before a blueprint handler
    runs, so they are handled at the app level.
    """

    @app.errorhandler(MethodNotAllowed)
    def _method_not_allowed(exc: MethodNotAllowed) -> ResponseReturnValue:
        return jsonify({"message": "Method not allowed"}), 405

    @app.errorhandler(RequestEntityTooLarge)
    def _too_large(exc: RequestEntityTooLarge) -> ResponseReturnValue:
        limit_mb = MAX_UPLOAD_BYTES // (1024 * 1024)
        return jsonify({"message": f"File too large (max {limit_mb}MB)"}), 413


@api.get("/health")
def health() -> ResponseReturnValue:
    return jsonify({"status": "ok"})


@api.get("/models")
def models() -> ResponseReturnValue:
    return jsonify({"models": [m.to_dict() for m in MODELS]})


@api.post("/initial-analysis")
def initial_analysis() -> ResponseReturnValue:
    body = parse_body(SourceAnalysisRequest, _json_body())
    return jsonify(_service().initial_analysis(body))


@api.post("/analysis")
def fallback_analysis() -> ResponseReturnValue:
    body = parse_body(SourceAnalysisRequest, _json_body())
    return jsonify(_service().fallback_analysis(body))


@api.post("/counter-narrative")
def counter_narrative() -> ResponseReturnValue:
    body = parse_body(SourceAnalysisRequest, _json_body())
    return jsonify(_service().counter_narrative(body))


@api.post("/detailed-analysis")
def detailed_analysis() -> ResponseReturnValue:
    body = parse_body(SourceAnalysisRequest, _json_body())
    return jsonify(_service().detailed_analysis(body))


@api.post("/extract-metadata")
def extract_metadata() -> ResponseReturnValue:
    body = parse_body(MetadataExtractionRequest, _json_body())
    return jsonify(_service().extract_metadata(body))


@api.post("/summarize-draft")
def summarize_draft() -> ResponseReturnValue:
    body = parse_body(DraftSummaryRequest, _json_body())
    return jsonify(_service().summarize_draft(body))


@api.post("/generate-wiki-overview")
def generate_wiki_overview() -> ResponseReturnValue:
    body = parse_body(WikiOverviewRequest, _json_body())
    return jsonify(_service().wiki_overview(body))


@api.post("/extract-info")
def extract_info() -> ResponseReturnValue:
    body = parse_body(InfoExtractionRequest, _json_body())
    return jsonify(_service().extract_info(body))


@api.post("/suggested-references")
def suggested_references() -> ResponseReturnValue:
    body = parse_body(SourceAnalysisRequest, _json_body())
    return jsonify(_service().suggested_references(body))


@api.post("/roleplay")
def roleplay() -> ResponseReturnValue:
    body = parse_body(RoleplayRequest, _json_body())
    return jsonify(_service().roleplay(body))


@api.post("/translate")
def translate() -> ResponseReturnValue:
    body = parse_body(TranslationRequest, _json_body())
    return jsonify(_service().translate(body))


@api.post("/highlight-segments")
def highlight_segments() -> ResponseReturnValue:
    body = parse_body(HighlightRequest, _json_body())
    return jsonify(_service().highlight_segments(body))


@api.post("/upload")
def upload() -> ResponseReturnValue:
    """Convert an uploaded document to plain text.

    Expects a multipart form with a ``file`` part.
    """
    uploaded = request.files.get("file")
    if uploaded is None or not uploaded.filename:
        msg = "No file uploaded"
        raise RequestValidationError(msg)

    data = uploaded.read()
    if len(data) > MAX_UPLOAD_BYTES:
        raise RequestEntityTooLarge

    result = extract_upload_text(uploaded.filename, data, uploaded.mimetype or "")
    logger.info(
        "upload_processed",
        component="api",
        subcomponent="routes",
        file_name=uploaded.filename,
        processing_method=result.processing_method,
        limited=result.limited,
    )
    return jsonify(result.to_dict())
