from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_cors import CORS
import os

# Flask extensions singletons

db = SQLAlchemy()
migrate = Migrate()


def _cors_origins() -> list[str]:
	# Comma-separated CORS_ALLOW_ORIGINS; local front-end dev servers otherwise
	raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
	origins = [o.strip() for o in raw.split(",") if o.strip()] if raw else []
	if not origins and os.getenv("FLASK_ENV", "development").lower() != "production":
		origins = [
			"http://localhost:5173",
			"http://127.0.0.1:5173",
			"http://localhost:8080",
			"http://127.0.0.1:8080",
		]
	return origins


cors = CORS(resources={r"/api/*": {"origins": _cors_origins()}})
