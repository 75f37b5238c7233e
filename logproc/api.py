"""Flask read API for the dashboard and log search."""

import logging
from typing import List, Optional

from flask import Flask, abort, jsonify, request

from logproc.config import Runtime
from logproc.models import SearchRequest
from logproc.utils import parse_instant

logger = logging.getLogger(__name__)


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        abort(400, description=f"Parameter '{name}' must be an integer")


def _time_arg(name: str):
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return parse_instant(raw)
    except ValueError:
        abort(400, description=f"Parameter '{name}' must be an ISO-8601 timestamp")


def create_app(runtime: Runtime) -> Flask:
    """Flask application factory."""
    app = Flask(__name__)
    app.config["RUNTIME"] = runtime
    query = runtime.query

    @app.errorhandler(400)
    def bad_request(e):
        return jsonify(error=e.description), 400

    # --- Dashboard ---

    @app.route("/api/v1/dashboard/metrics")
    def dashboard_metrics():
        logger.info("Fetching dashboard metrics")
        return jsonify(query.dashboard_metrics().to_wire())

    @app.route("/api/v1/dashboard/log-volume")
    def log_volume():
        hours = _int_arg("hours", 24)
        logger.info("Fetching log volume for last %d hours", hours)
        return jsonify([p.to_wire() for p in query.log_volume_for_hours(hours)])

    @app.route("/api/v1/dashboard/log-level-distribution")
    def log_level_distribution():
        logger.info("Fetching log level distribution")
        return jsonify([e.to_wire() for e in query.level_distribution()])

    @app.route("/api/v1/dashboard/top-services")
    def top_services():
        limit = _int_arg("limit", 10)
        logger.info("Fetching top %d services", limit)
        return jsonify([s.to_wire() for s in query.top_services(limit)])

    @app.route("/api/v1/dashboard/anomalies")
    def anomalies():
        hours = _int_arg("hours", 24)
        logger.info("Fetching anomalies for last %d hours", hours)
        return jsonify([a.to_wire() for a in query.anomalies(hours)])

    @app.route("/api/v1/dashboard/recent-alerts")
    def recent_alerts():
        limit = _int_arg("limit", 10)
        logger.info("Fetching recent %d alerts", limit)
        # No alerting collaborator is wired in; always empty
        return jsonify([])

    # --- Search ---

    @app.route("/api/v1/logs/search")
    def search_logs():
        args = request.args
        search = SearchRequest(
            query=args.get("query") or None,
            levels=_split_csv(args.get("level")),
            services=_split_csv(args.get("service")),
            hosts=_split_csv(args.get("host")),
            start_time=_time_arg("startTime"),
            end_time=_time_arg("endTime"),
            page=_int_arg("page", 0),
            size=_int_arg("size", 50),
            sort_by=args.get("sortBy") or "timestamp",
            sort_order=args.get("sortDirection") or "desc",
        )
        logger.debug(
            "Searching logs: page=%d, size=%d, levels=%s, services=%s",
            search.page,
            search.size,
            search.levels,
            search.services,
        )
        return jsonify(query.search(search).to_wire())

    # --- Health ---

    @app.route("/api/v1/processor/health")
    def health():
        return jsonify({
            "status": "UP",
            "service": "log-processor",
            "elasticsearch": "UP" if runtime.index_store.ping() else "DOWN",
            "mlService": "UP" if runtime.prediction_client.is_available() else "DOWN",
        })

    return app
