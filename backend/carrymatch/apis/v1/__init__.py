from flask import Blueprint, Flask, g, request, current_app

from ...modules.trips.routes import bp as trips_bp
from ...modules.shipments.routes import bp as shipments_bp
from ...modules.matching.routes import bp as matching_bp
from ...modules.matches.routes import bp as matches_bp
from ...modules.notifications.routes import bp as notifications_bp
from ...modules.alerts.routes import bp as alerts_bp
from ...modules.users.routes import bp as users_bp


def register_api(app: Flask) -> None:
    api_v1 = Blueprint("api_v1", __name__, url_prefix="/api/v1")

    # Lightweight auth context loader.
    # In development and tests (DEBUG or TESTING) an `X-User-Id` header or an
    # `Authorization: User <id>` header is accepted to simplify local work.
    # Otherwise a signed bearer token issued by the identity provider is required.
    @api_v1.before_request  # type: ignore
    def _load_current_user():
        from ...extensions import db
        from ...models.user import User  # local import to avoid circulars
        from ...security import verify_token
        uid: int | None = None
        dev_mode = bool(current_app.config.get("DEBUG") or current_app.config.get("TESTING"))

        # Bearer token takes precedence
        auth = request.headers.get("Authorization") or ""
        if auth.lower().startswith("bearer "):
            uid, _role = verify_token(auth[7:].strip())
        elif dev_mode:
            raw = request.headers.get("X-User-Id") or ""
            if not raw and auth.lower().startswith("user "):
                raw = auth[5:].strip()
            if raw.isdigit() and int(raw) > 0:
                uid = int(raw)
        user_obj = db.session.get(User, uid) if uid is not None else None
        g.current_user = user_obj  # type: ignore[attr-defined]
        g.current_user_id = user_obj.id if user_obj else None  # type: ignore[attr-defined]

    # Mount feature blueprints
    api_v1.register_blueprint(trips_bp)
    api_v1.register_blueprint(shipments_bp)
    api_v1.register_blueprint(matching_bp)
    api_v1.register_blueprint(matches_bp)
    api_v1.register_blueprint(notifications_bp)
    api_v1.register_blueprint(alerts_bp)
    api_v1.register_blueprint(users_bp)

    app.register_blueprint(api_v1)
