"""
move-explainer — Flask Web Application

HTTP surface for the explanation service and the Move decompilation
pipeline. Services are built once in ``create_app`` and injected; the
explanation store is connected there and closed at interpreter exit.
"""

import sys
import os
import atexit
import logging
from typing import Optional

# Add project root to path so we can import the move_explainer package
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from flask import Flask, jsonify, request
from flask_cors import CORS

from move_explainer.address import Address
from move_explainer.config import Settings, load_settings
from move_explainer.decompilation_pipeline import DecompilationPipeline, FailurePolicy
from move_explainer.errors import MoveExplainerError, ValidationError
from move_explainer.explanation_service import ExplanationService
from move_explainer.explanation_store import ExplanationStore
from move_explainer.models import CreateExplanationRequest
from move_explainer.revela import RevelaDecompiler
from move_explainer.sui_rpc import SuiNetwork, SuiRpcClient

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App Setup
# ---------------------------------------------------------------------------

def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def build_pipeline(settings: Settings) -> DecompilationPipeline:
    return DecompilationPipeline(
        fetcher=SuiRpcClient(
            url_template=settings.rpc_url_template,
            timeout=settings.rpc_timeout,
        ),
        decompiler=RevelaDecompiler(
            binary=settings.revela_binary,
            timeout=settings.decompile_timeout,
        ),
        config=settings.pipeline_config(),
    )


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ExplanationStore] = None,
    pipeline: Optional[DecompilationPipeline] = None,
) -> Flask:
    """Build the Flask app with its services wired in."""
    settings = settings or load_settings()

    if store is None:
        store = ExplanationStore(settings.db_path)
    store.connect()

    service = ExplanationService(store, enforce_ownership=settings.enforce_ownership)
    pipeline = pipeline or build_pipeline(settings)

    app = Flask(__name__)
    # Explanations are short text; 1 MB is plenty
    app.config["MAX_CONTENT_LENGTH"] = 1 * 1024 * 1024
    CORS(app, resources={r"/*": {"origins": "*"}})

    app.extensions["move_explainer"] = {
        "settings": settings,
        "store": store,
        "service": service,
        "pipeline": pipeline,
    }
    register_error_handlers(app)
    register_routes(app, service, pipeline)
    return app


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(MoveExplainerError)
    def handle_service_error(e: MoveExplainerError):
        if e.status_code >= 500:
            logger.error("%s: %s", e.code, e.message)
        return jsonify({"error": e.to_dict()}), e.status_code


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

def register_routes(
    app: Flask, service: ExplanationService, pipeline: DecompilationPipeline
) -> None:

    @app.route("/api/health", methods=["GET"])
    def api_health():
        """Health check endpoint."""
        return jsonify({"status": "ok"})

    @app.route("/expl/create", methods=["POST"])
    def create_explanation():
        """
        Create an explanation.

        Expects JSON: { "package_id", "module_name", "function_name",
        "owner", "content" }. Returns ``{"inserted_id": ...}``.
        """
        req = CreateExplanationRequest.from_dict(request.get_json(silent=True))
        ack = service.create(req)
        return jsonify(ack.to_dict()), 201

    @app.route("/expl/<explanation_id>", methods=["GET"])
    def get_explanation(explanation_id):
        return jsonify(service.get_by_id(explanation_id).to_dict())

    @app.route("/expl/<explanation_id>", methods=["PUT"])
    def update_explanation(explanation_id):
        """Replace the content of an explanation. Only ``content`` changes."""
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or "content" not in data:
            raise ValidationError("Missing 'content' field in request body.", field="content")
        ack = service.update_content(explanation_id, data["content"], caller=data.get("owner"))
        return jsonify(ack.to_dict())

    @app.route("/expl/<explanation_id>", methods=["DELETE"])
    def delete_explanation(explanation_id):
        ack = service.delete(explanation_id, caller=request.args.get("owner"))
        return jsonify(ack.to_dict())

    @app.route("/expl/owner/<owner>", methods=["GET"])
    def get_explanations_by_owner(owner):
        owner_addr = Address.parse(owner, field="owner")
        records = service.get_by_owner(owner_addr.as_str())
        return jsonify([r.to_dict() for r in records])

    @app.route("/expl/function", methods=["GET"])
    def get_explanations_by_function():
        records = service.get_by_function(
            _require_query("package_id"),
            _require_query("module_name"),
            _require_query("function_name"),
        )
        return jsonify([r.to_dict() for r in records])

    @app.route("/expl/get_move_code", methods=["GET"])
    def get_move_code():
        """
        Decompile every module of an on-chain package.

        Query: ``pid`` (package address), ``network`` (mainnet/testnet/devnet),
        optional ``policy`` (abort/collect).
        """
        address = Address.parse(_require_query("pid"), field="pid")
        network = SuiNetwork.parse(_require_query("network"))
        policy_token = request.args.get("policy")
        policy = FailurePolicy.parse(policy_token) if policy_token else None

        result = pipeline.decompile_object(address, network, policy=policy)
        return jsonify(result.to_dict())


def _require_query(name: str) -> str:
    value = request.args.get(name)
    if not value:
        raise ValidationError(f"Missing query parameter {name}", field=name)
    return value


# ---------------------------------------------------------------------------
# Entry Point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    settings = load_settings()
    configure_logging(settings.log_level)
    app = create_app(settings)
    atexit.register(app.extensions["move_explainer"]["store"].close)
    logger.info("Starting move-explainer on %s:%d", settings.host, settings.port)
    app.run(host=settings.host, port=settings.port, threaded=True)
