import logging

from flask import Flask, jsonify
from flask_cors import CORS

from config.log_setup import configure_logging
from config.settings import settings
from routes.submissions import submissions_bp
from services.submission_pipeline import build_pipeline

logger = logging.getLogger(__name__)


def create_app(pipeline=None, config=None):
    app = Flask(__name__)
    CORS(app)

    # Configuration
    app.config['UPLOAD_FOLDER'] = settings.UPLOAD_FOLDER
    app.config['MAX_CONTENT_LENGTH'] = settings.MAX_CONTENT_LENGTH
    app.config['SECRET_KEY'] = settings.SECRET_KEY
    app.config['AUTH_REQUIRED'] = settings.AUTH_REQUIRED
    if config:
        app.config.update(config)

    app.extensions['submission_pipeline'] = pipeline or build_pipeline()

    # Register blueprints
    app.register_blueprint(submissions_bp)

    @app.route('/')
    def home():
        return jsonify({"message": "Gradeflow submission backend is running!"})

    @app.route('/api/health')
    def health_check():
        return jsonify({"status": "healthy"})

    @app.errorhandler(413)
    def too_large(_error):
        return jsonify({"error": "Uploaded file is too large"}), 413

    return app


configure_logging(settings.LOG_LEVEL)
app = create_app()

if __name__ == '__main__':
    app.run(debug=True, port=5000)
