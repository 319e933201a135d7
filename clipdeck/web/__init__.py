"""Flask application factory for the ClipDeck web API."""

from flask import Flask, jsonify

from clipdeck.config import Settings
from clipdeck.runtime import BackgroundLoop


def create_app(settings: Settings | None = None) -> Flask:
    app = Flask(__name__)
    app.config["SETTINGS"] = settings or Settings()
    app.extensions["clipdeck.loop"] = BackgroundLoop()

    from clipdeck.web.routes import bp
    app.register_blueprint(bp)

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Not found"}), 404

    return app
