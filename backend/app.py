import logging

from flask import Flask, jsonify
from flask_cors import CORS

from config import Config
from database import init_db
from routes.auth_routes import auth_bp, jwt
from routes.sync_routes import sync_bp


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)
    # payloads go back out with the key order they were pushed in
    app.json.sort_keys = False

    if not app.debug and not app.testing:
        logging.basicConfig(level=logging.INFO)

    # --- Extensions ---
    jwt.init_app(app)
    init_db(app)

    # --- CORS ---
    CORS(app, resources={r"*": {"origins": app.config.get("CORS_ORIGINS", "*")}})

    # --- Blueprints ---
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(sync_bp)

    # --- Health check route ---
    @app.get("/health")
    def health():
        return jsonify({"status": "ok"})

    return app


if __name__ == "__main__":
    create_app().run(debug=True)
