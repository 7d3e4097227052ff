import json
import logging

import click
from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO

from config import Config

socketio = SocketIO(async_mode=None)


def _cors_origins(raw):
    if not raw or raw.strip() == '*':
        return '*'
    return [part.strip() for part in raw.split(',') if part.strip()]


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    level = flask_app.config.get('LOG_LEVEL', 'INFO')
    logging.basicConfig(format='%(asctime)s | %(levelname)s | %(name)s | %(message)s')
    flask_app.logger.setLevel(level)
    logging.getLogger('quizlive').setLevel(level)

    origins = _cors_origins(flask_app.config.get('CORS_ORIGINS'))
    CORS(flask_app, origins=origins)
    socketio.init_app(flask_app, cors_allowed_origins=origins)

    # Session store, broadcaster and room registry live on the app, not in module globals
    from quizlive.broadcast import SocketBroadcaster
    from quizlive.services.quiz import DeadlineScheduler, RoomRegistry
    from quizlive.store import create_store

    namespace = flask_app.config.get('SOCKETIO_NAMESPACE', '/ws')
    store = create_store(flask_app.config)
    deadline_timer = None
    if flask_app.config.get('ENFORCE_DEADLINE'):
        deadline_timer = DeadlineScheduler.for_socketio(socketio)
    registry = RoomRegistry(
        SocketBroadcaster(socketio, namespace),
        store,
        leaderboard_size=int(flask_app.config.get('LEADERBOARD_SIZE', 10)),
        default_time_limit=int(flask_app.config.get('DEFAULT_TIME_LIMIT_SEC', 20)),
        deadline_timer=deadline_timer,
    )
    flask_app.extensions['quiz_store'] = store
    flask_app.extensions['quiz_registry'] = registry
    flask_app.logger.info(f'[startup] store={store.mode()} namespace={namespace} enforce_deadline={bool(deadline_timer)}')

    from quizlive.routes import main
    flask_app.register_blueprint(main)

    from quizlive.api.sessions import sessions
    flask_app.register_blueprint(sessions, url_prefix='/sessions')

    from quizlive.socketio_events import register_socketio_handlers
    register_socketio_handlers(namespace)

    @click.command('store-ping')
    def store_ping_command():
        """Prints the snapshot store health."""
        click.echo(json.dumps(store.ping()))

    @click.command('snapshot-show')
    @click.argument('pin')
    def snapshot_show_command(pin):
        """Prints the durable snapshot stored for PIN."""
        data = store.load(pin)
        if data is None:
            raise click.ClickException(f'no snapshot for {pin}')
        click.echo(json.dumps(data, indent=2))

    flask_app.cli.add_command(store_ping_command)
    flask_app.cli.add_command(snapshot_show_command)

    return flask_app
