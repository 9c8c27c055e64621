import atexit
import logging
from flask import Flask, request, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_socketio import SocketIO
from flask_cors import CORS
from ladder.config import config
from ladder.time_utils import utcnow_naive

db = SQLAlchemy()
socketio = SocketIO()

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
SAFE_METHODS = {'GET', 'HEAD', 'OPTIONS'}


def _parse_allowed_origins(raw_origins):
    if not raw_origins:
        return '*'

    if isinstance(raw_origins, (list, tuple, set)):
        cleaned = [origin for origin in raw_origins if origin]
        return cleaned or '*'

    raw_text = str(raw_origins).strip()
    if not raw_text or raw_text == '*':
        return '*'

    origins = [origin.strip() for origin in raw_text.split(',') if origin.strip()]
    return origins or '*'


def _configure_logging(level_name):
    level = getattr(logging, str(level_name or 'INFO').upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger('ladder').setLevel(level)
    logging.getLogger('apscheduler').setLevel(max(level, logging.WARNING))


def _emit_ladder_update(event_name, payload):
    socketio.emit('ladder_update', {
        'event': event_name,
        'payload': payload,
        'updated_at': utcnow_naive().isoformat(),
    })


def get_ladder_service(app):
    return app.extensions['ladder']


def create_app(config_name='development', clock=None, notification_sink=None, config_overrides=None):
    app = Flask(__name__)
    app.config.from_object(config[config_name])
    if config_overrides:
        app.config.update(config_overrides)
    _configure_logging(app.config.get('LOG_LEVEL'))

    allowed_origins = _parse_allowed_origins(app.config.get('CORS_ALLOWED_ORIGINS', '*'))
    if str(config_name).strip().lower() == 'production':
        secret_key = str(app.config.get('SECRET_KEY') or '').strip()
        if not secret_key or secret_key == 'dev-secret-key-change-in-prod':
            raise RuntimeError('SECRET_KEY must be set to a non-default value in production')
        if allowed_origins == '*':
            raise RuntimeError('CORS_ALLOWED_ORIGINS must be explicitly set in production')

    db.init_app(app)
    socketio.init_app(
        app,
        cors_allowed_origins=allowed_origins,
        async_mode=app.config.get('SOCKETIO_ASYNC_MODE', 'threading'),
    )
    CORS(app, resources={r'/api/*': {'origins': allowed_origins}})

    @app.before_request
    def _reject_foreign_origin_writes():
        if allowed_origins == '*' or request.method in SAFE_METHODS:
            return None
        origin = str(request.headers.get('Origin') or '').strip()
        if origin and request.path.startswith('/api/') and origin not in allowed_origins:
            logger.warning('Rejected %s %s from origin %s', request.method, request.path, origin)
            return jsonify({'error': 'Invalid request origin'}), 403
        return None

    from ladder.errors import LadderError

    @app.errorhandler(LadderError)
    def _handle_ladder_error(error):
        return jsonify(error.to_dict()), error.status_code

    from ladder.services.ladder import LadderService
    from ladder.services.rules import LadderRules
    from ladder.services.sinks import sink_from_config

    service = LadderService(
        rules=LadderRules.from_config(app.config),
        sink=notification_sink or sink_from_config(app.config),
        clock=clock or utcnow_naive,
    )
    service.subscribe(_emit_ladder_update)
    app.extensions['ladder'] = service

    from ladder.routes.api import api_bp

    app.register_blueprint(api_bp, url_prefix='/api')

    with app.app_context():
        from ladder import models  # noqa: F401
        db.create_all()

    if app.config.get('EXPIRY_SWEEP_ENABLED'):
        from ladder.services.scheduler import ExpirySweeper
        sweeper = ExpirySweeper(
            app, service,
            interval_seconds=app.config.get('EXPIRY_SWEEP_INTERVAL_SECONDS', 60),
        )
        sweeper.start()
        atexit.register(sweeper.shutdown)
        app.extensions['ladder_sweeper'] = sweeper

    logger.info('Squash ladder app created (%s)', config_name)
    return app
