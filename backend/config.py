import os


def _flag(name, default='0'):
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/ws')
    CORS_ORIGINS = [
        o.strip() for o in os.environ.get(
            'CORS_ORIGINS',
            'http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000',
        ).split(',') if o.strip()
    ]
    # Number calling timers (seconds)
    CALL_INTERVAL_SEC = float(os.environ.get('CALL_INTERVAL_SEC', '3'))
    COUNTDOWN_SEC = int(os.environ.get('COUNTDOWN_SEC', '10'))
    COUNTDOWN_TICK_SEC = float(os.environ.get('COUNTDOWN_TICK_SEC', '1'))
    # Upper bound on tickets a player may ask for
    MAX_TICKETS_PER_PLAYER = int(os.environ.get('MAX_TICKETS_PER_PLAYER', '10'))
    # Retries before strip generation gives up
    STRIP_MAX_ATTEMPTS = int(os.environ.get('STRIP_MAX_ATTEMPTS', '50'))
    # How long a running game waits for a lost host before ending. 0 disables.
    HOST_GRACE_SEC = float(os.environ.get('HOST_GRACE_SEC', '300'))
    # Check claimed patterns against called numbers instead of trusting clients
    VERIFY_CLAIMS = _flag('VERIFY_CLAIMS')
    # Timers never spawn background tasks under TESTING unless this is set
    ENABLE_SCHEDULER_IN_TESTS = _flag('ENABLE_SCHEDULER_IN_TESTS')
