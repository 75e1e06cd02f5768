"""Flask application factory for the SourcePrint JSON API."""

from flask import Flask, jsonify


def create_app() -> Flask:
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = 16 * 1024 * 1024  # 16 MB of manifest JSON

    from sourceprint.web.routes import bp
    app.register_blueprint(bp)

    @app.errorhandler(ValueError)
    def invalid_input(error):
        return jsonify({"error": str(error)}), 400

    @app.errorhandler(413)
    def request_entity_too_large(error):
        return jsonify({"error": "Manifest too large"}), 413

    return app
