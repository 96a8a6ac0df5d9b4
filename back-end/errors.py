# back-end/errors.py
from flask import jsonify
from google.api_core.exceptions import GoogleAPICallError


class TodoError(Exception):
  status_code = 500

  def __init__(self, message=None):
    super().__init__(message or self.__class__.__name__)
    self.message = message or self.__class__.__name__


class ValidationError(TodoError):
  status_code = 400


class AuthenticationError(TodoError):
  status_code = 401


class PermissionDeniedError(TodoError):
  """Principal lacks the role a mutation needs (not owner, not inviter)."""
  status_code = 403


class ForbiddenError(TodoError):
  """Principal identity does not match the resource (invitation email)."""
  status_code = 403


class NotFoundError(TodoError):
  status_code = 404


class InvalidStateError(TodoError):
  status_code = 409


class ExpiredError(TodoError):
  status_code = 410


class TransientError(TodoError):
  status_code = 503


def register_error_handlers(app):
  @app.errorhandler(TodoError)
  def handle_todo_error(e):
    if isinstance(e, TransientError):
      print(f"[errors] transient failure: {e.message}")
    return jsonify({"error": e.message}), e.status_code

  @app.errorhandler(GoogleAPICallError)
  def handle_backend_error(e):
    print(f"[errors] backend call failed: {e}")
    return handle_todo_error(TransientError("Backend temporarily unavailable"))
