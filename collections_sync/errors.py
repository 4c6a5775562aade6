from flask import jsonify
from werkzeug.exceptions import HTTPException


class SyncError(Exception):
    """Base failure carrying the wire error code and HTTP status."""

    status = 500

    def __init__(self, code: str, status: int | None = None, **extra):
        super().__init__(code)
        self.code = code
        if status is not None:
            self.status = status
        self.extra = extra

    def to_dict(self) -> dict:
        return {"ok": False, "error": self.code, **self.extra}


class InputError(SyncError):
    status = 400


class AuthError(SyncError):
    status = 401


class NotFoundError(SyncError):
    status = 404


class StoreError(SyncError):
    status = 500


class UpstreamError(SyncError):
    status = 502


def register_error_handlers(app):
    @app.errorhandler(SyncError)
    def handle_sync_error(err: SyncError):
        response = jsonify(err.to_dict())
        response.status_code = err.status
        return response

    @app.errorhandler(Exception)
    def handle_unexpected(err: Exception):
        if isinstance(err, HTTPException):
            return err
        app.logger.exception("unhandled error")
        response = jsonify({"ok": False, "error": str(err) or err.__class__.__name__})
        response.status_code = 500
        return response
