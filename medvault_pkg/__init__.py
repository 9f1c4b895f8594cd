# medvault_pkg/__init__.py

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_caching import Cache
from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException, NotFound

# Load environment variables from .env file.
load_dotenv()

from .config import get_config
from .errors import PortalError

# Initialize extensions at the top level, but without an app context.
db = SQLAlchemy()
migrate = Migrate()
cache = Cache()


def create_app(config_name='development'):
    """
    Application factory function.
    """
    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    db.init_app(app)
    migrate.init_app(app, db)
    cache.init_app(app)

    # socketio imports the models, so it is attached after the app exists.
    from .sockets import socketio
    socketio.init_app(app)

    from .auth.routes import auth_bp
    app.register_blueprint(auth_bp, url_prefix='/api/auth')

    from .access.routes import access_bp
    app.register_blueprint(access_bp, url_prefix='/api')

    from .appointments.routes import appointments_bp
    app.register_blueprint(appointments_bp, url_prefix='/api')

    from .reports.routes import reports_bp
    app.register_blueprint(reports_bp, url_prefix='/api')

    from .metrics.routes import metrics_bp
    app.register_blueprint(metrics_bp, url_prefix='/api')

    from .medications.routes import medications_bp
    app.register_blueprint(medications_bp, url_prefix='/api')

    from .profiles.routes import profiles_bp
    app.register_blueprint(profiles_bp, url_prefix='/api')

    from .doctor.routes import doctor_bp
    app.register_blueprint(doctor_bp, url_prefix='/api/doctor')

    from .dashboard.routes import dashboard_bp
    app.register_blueprint(dashboard_bp, url_prefix='/api')

    from .notifications.routes import notifications_bp
    app.register_blueprint(notifications_bp, url_prefix='/api')

    from .assistant.routes import assistant_bp
    app.register_blueprint(assistant_bp, url_prefix='/api')

    from .reminders.services import register_reminder_commands
    register_reminder_commands(app)

    @app.route('/health')
    def health_check():
        return "MedVault is healthy!", 200

    # Centralized error handling
    @app.errorhandler(PortalError)
    def handle_portal_error(e):
        if e.status_code >= 500:
            app.logger.error(f"{e.__class__.__name__}: {e.message}")
        else:
            app.logger.info(f"{e.__class__.__name__}: {e.message}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e):
        app.logger.error(f"Database Error: {e}")
        db.session.rollback()
        return jsonify({"error": "A database error occurred."}), 500

    @app.errorhandler(NotFound)
    def handle_not_found_error(e):
        app.logger.warning(f"Not Found Error: {e}")
        return jsonify({"error": "The requested resource was not found."}), 404

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_generic_error(e):
        app.logger.error(f"An unexpected error occurred: {e}", exc_info=True)
        return jsonify({"error": "An unexpected server error occurred."}), 500

    return app
