"""
Read-only HTTP API over the result store.

Routes:
  GET /get-all-data                  -> {"keys": [summary, ...]} sorted by id
  GET /detail/<result_id>/<version>  -> {"portfolio": <stored result>}
  GET /health                        -> {"ok": true}

Bodies are serialised with sorted keys, so the same stored version always
produces the same response bytes. Unknown ids/versions answer 404 and backend
failures 503.

Run it with actions/serve_results.py or `python -m bar_replay.api.app`.
"""

from __future__ import annotations

import json

from flask import Flask, Response, jsonify

from bar_replay.api.decorators import handle_result_not_found, handle_storage_error
from bar_replay.storage.result_store import ResultStore


def _json_response(body: dict, status: int = 200) -> Response:
    return Response(
        json.dumps(body, sort_keys=True, separators=(",", ":")),
        status=status,
        mimetype="application/json",
    )


def create_app(store: ResultStore) -> Flask:
    """
    Build the Flask app bound to a result store.

    Args:
        store: Store queried by every request.

    Returns:
        Configured Flask application.
    """
    app = Flask(__name__)
    app.extensions["result_store"] = store

    @app.get("/get-all-data")
    @handle_storage_error
    def get_all_data():
        summaries = store.list_results()
        return _json_response({"keys": [summary.to_dict() for summary in summaries]})

    @app.get("/detail/<result_id>/<int:version>")
    @handle_storage_error
    @handle_result_not_found
    def get_detail(result_id: str, version: int):
        payload = store.fetch_payload(result_id, version)
        return _json_response({"portfolio": json.loads(payload)})

    @app.get("/health")
    def health():
        return jsonify({"ok": True})

    return app


if __name__ == "__main__":
    from bar_replay.config.settings import get_settings
    from bar_replay.utils.logging import configure_logging

    settings = get_settings()
    configure_logging(settings.logging)
    create_app(ResultStore.from_settings(settings.redis)).run(
        host=settings.server.host, port=settings.server.port
    )
