"""Flask JSON API over the LogLens facade."""

import logging

from flask import Flask, jsonify, request

from loglens.config import Config
from loglens.errors import InvalidArgument, RecordNotFoundError
from loglens.models import ParserConfig, Query, TimelineRequest
from loglens.schemas import require_valid
from loglens.service import LogLens

logger = logging.getLogger(__name__)


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        raise InvalidArgument("request body must be JSON")
    return payload


def create_app(engine: LogLens | None = None, config: Config | None = None) -> Flask:
    """Flask application factory."""
    app = Flask(__name__)

    if config is None:
        config = Config.load()
    if engine is None:
        engine = LogLens.from_config(config)

    app.config["components"] = {"config": config, "engine": engine}

    @app.errorhandler(InvalidArgument)
    def invalid_argument(e):
        return jsonify({"error": str(e), "details": e.details}), 400

    @app.errorhandler(RecordNotFoundError)
    def not_found(e):
        return jsonify({"error": str(e)}), 404

    # --- Routes ---

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "total_records": engine.get_stats().total_records})

    @app.route("/api/ingest", methods=["POST"])
    def ingest():
        payload = require_valid("ingest", _json_body())
        parser_config = ParserConfig.from_dict(payload["parser"]) if "parser" in payload else None
        result = engine.ingest(payload["lines"], parser_config)
        return jsonify(result.to_dict()), 201

    @app.route("/api/query", methods=["POST"])
    def run_query():
        payload = require_valid("query", _json_body())
        return jsonify(engine.run_query(Query.from_dict(payload)).to_dict())

    @app.route("/api/explain", methods=["POST"])
    def explain():
        payload = require_valid("query", _json_body())
        return jsonify({"plan": engine.explain(Query.from_dict(payload))})

    @app.route("/api/timeline", methods=["POST"])
    def timeline():
        payload = require_valid("timeline", _json_body())
        points = engine.run_timeline(TimelineRequest.from_dict(payload))
        return jsonify([p.to_dict() for p in points])

    @app.route("/api/report", methods=["POST"])
    def report():
        payload = require_valid("report", _json_body())
        query = Query.from_dict(payload.get("query") or {})
        bucket_ms = payload.get("bucketMs", config.get("timeline.default_bucket_ms"))
        return jsonify(engine.build_report(query, bucket_ms).to_dict())

    @app.route("/api/stats")
    def stats():
        return jsonify(engine.get_stats().to_dict())

    @app.route("/api/records/<record_id>")
    def get_record(record_id):
        return jsonify(engine.get_record(record_id).to_dict())

    @app.route("/api/parsers")
    def parsers():
        return jsonify(engine.supported_parser_types())

    return app
