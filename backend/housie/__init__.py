import random

import click
from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO

from config import Config

socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS', [])
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from housie.services.rooms.broadcast import SocketIOBroadcaster
    from housie.services.rooms.registry import RoomRegistry

    namespace = flask_app.config.get('SOCKETIO_NAMESPACE', '/ws')
    # Under TESTING, timers are driven by the tests instead of background tasks
    timers_enabled = not flask_app.config.get('TESTING') or flask_app.config.get('ENABLE_SCHEDULER_IN_TESTS')
    flask_app.extensions['rooms'] = RoomRegistry.from_config(
        flask_app.config,
        SocketIOBroadcaster(socketio, namespace=namespace),
        start_background_task=socketio.start_background_task if timers_enabled else None,
        sleep=socketio.sleep,
    )

    from housie.main import main
    flask_app.register_blueprint(main)

    from housie.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api')

    from housie.socketio_events import register_socketio_handlers
    register_socketio_handlers(namespace=namespace)

    @click.command('print-strip')
    @click.option('--seed', type=int, default=None, help='Seed for a reproducible strip.')
    def print_strip_command(seed):
        """Generates one six-ticket strip and prints it."""
        from housie.services.rooms.tickets import format_ticket, generate_strip

        rng = random.Random(seed) if seed is not None else None
        strip = generate_strip(rng, max_attempts=flask_app.config.get('STRIP_MAX_ATTEMPTS', 50))
        for index, ticket in enumerate(strip, 1):
            click.echo(f"Ticket {index}")
            click.echo(format_ticket(ticket))
            click.echo('')

    flask_app.cli.add_command(print_strip_command)

    return flask_app
