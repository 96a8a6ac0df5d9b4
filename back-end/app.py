from datetime import date, datetime
import os

from flask import Flask
from flask.json.provider import DefaultJSONProvider
from flask_cors import CORS

from email_service import InvitationMailer
from errors import register_error_handlers
from extensions import init_services
from invitations import invitations_bp
from notifications import notifications_bp
from recurring_tasks import recurring_bp
from repository import FirestoreRepository
from sharing import sharing_bp
from task_lists import lists_bp
from todos import todos_bp
from users import users_bp

ENABLE_RECURRING_SCHEDULER = os.environ.get("ENABLE_RECURRING_SCHEDULER", "false").lower() == "true"
CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")


class IsoJSONProvider(DefaultJSONProvider):
    """Serialise datetimes as ISO 8601 instead of HTTP dates."""

    @staticmethod
    def default(o):
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        return DefaultJSONProvider.default(o)


def create_app(db=None, mailer=None, start_scheduler=None):
    """Build the Flask app.

    ``db`` is a Firestore client (or a compatible fake) and ``mailer`` an
    object with ``send_invitation``; both default to the real services.
    """
    if db is None:
        from firebase_db import create_client
        db = create_client()

    app = Flask(__name__)
    app.json = IsoJSONProvider(app)
    CORS(app, resources={r"/api/*": {"origins": CORS_ORIGINS}})

    repository = FirestoreRepository(db)
    init_services(app, repository, mailer or InvitationMailer())
    register_error_handlers(app)

    app.register_blueprint(lists_bp, url_prefix="/api")
    app.register_blueprint(sharing_bp, url_prefix="/api")
    app.register_blueprint(invitations_bp, url_prefix="/api")
    app.register_blueprint(notifications_bp, url_prefix="/api/notifications")
    app.register_blueprint(users_bp, url_prefix="/api/users")
    app.register_blueprint(recurring_bp, url_prefix="/api/recurring")
    app.register_blueprint(todos_bp, url_prefix="/api/todos")

    if start_scheduler is None:
        start_scheduler = ENABLE_RECURRING_SCHEDULER
    if start_scheduler:
        from scheduler import start_background_scheduler
        start_background_scheduler(repository)
    return app


# Running app
if __name__ == "__main__":
    if not ENABLE_RECURRING_SCHEDULER:
        print("⏸️  Recurring task scheduler is disabled")
        print("   Set ENABLE_RECURRING_SCHEDULER=true to enable")
    create_app().run(debug=True, use_reloader=False)  # use_reloader=False prevents double initialization
