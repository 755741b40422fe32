from __future__ import annotations

from functools import wraps
from typing import Any, Callable

from flask import jsonify
from loguru import logger

from bar_replay.storage.result_store import ResultNotFoundError, StorageError

_log = logger.bind(component="api")


def handle_result_not_found(func: Callable[..., Any]):
    """
    Decorator: convert ResultNotFoundError into HTTP 404.

    Contract:
    - Only catches ResultNotFoundError
    - Returns JSON {error, id, version}
    """

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ResultNotFoundError as e:
            return jsonify({
                "error": "result not found",
                "id": e.result_id,
                "version": e.version,
            }), 404

    return wrapper


def handle_storage_error(func: Callable[..., Any]):
    """
    Decorator: convert StorageError into HTTP 503.

    The backend message is logged, not returned to the client.
    """

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except StorageError as e:
            _log.error("Storage failure in {}: {}", func.__name__, e)
            return jsonify({"error": "storage unavailable"}), 503

    return wrapper
