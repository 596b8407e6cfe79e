import logging

from flask import Flask, jsonify
from flask_cors import CORS
from sqlalchemy import text

from .config import Config
from .database import db

logger = logging.getLogger(__name__)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(level=app.config.get('LOG_LEVEL', 'INFO'))

    CORS(app, resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}})
    db.init_app(app)

    from .commands import register_commands
    from .errors import register_error_handlers
    from .routes import register_blueprints

    register_error_handlers(app)
    register_blueprints(app)
    register_commands(app)

    @app.route('/api/health', methods=['GET'])
    def health_check():
        try:
            db.session.execute(text('SELECT 1'))
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return jsonify({'status': 'unhealthy', 'database': 'disconnected'}), 500
        return jsonify({'status': 'healthy', 'database': 'connected'})

    with app.app_context():
        db.create_all()

    return app
