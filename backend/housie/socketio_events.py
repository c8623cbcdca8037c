from flask import current_app, request
from flask_socketio import emit

from housie.services.rooms.tickets import StripGenerationError


def _registry():
    return current_app.extensions['rooms']


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to housie'})


def handle_disconnect(reason=None):
    _registry().disconnect(_get_sid())


def handle_ping(data=None):
    emit('pong', data or {})


def handle_create_room(data):
    data = data or {}
    host = data.get('host')
    if not host:
        emit('error', {'message': 'host is required'})
        return
    _registry().create_room(
        host,
        _get_sid(),
        num_players=data.get('numPlayers'),
        room_name=data.get('roomName'),
        ticket_price=data.get('ticketPrice'),
        num_tickets=data.get('numTickets'),
    )


def handle_join_room(data):
    data = data or {}
    _registry().join_room(
        data.get('roomId'),
        data.get('player'),
        _get_sid(),
        num_tickets=data.get('numTickets'),
    )


def handle_rejoin_host(data):
    data = data or {}
    _registry().rejoin_host(data.get('roomId'), data.get('host'), _get_sid())


def handle_get_available_tickets(data):
    data = data or {}
    try:
        _registry().offer_strip(data.get('roomId'), data.get('player'), _get_sid())
    except StripGenerationError as exc:
        current_app.logger.exception(f"[strip-failed] room={data.get('roomId')} player={data.get('player')}: {exc}")
        emit('error', {'message': 'Could not generate tickets, please try again.'})


def handle_select_tickets(data):
    data = data or {}
    _registry().select_tickets(
        data.get('roomId'),
        data.get('player'),
        data.get('selectedIndices') or [],
        sid=_get_sid(),
    )


def handle_start_game(data):
    _registry().start_game((data or {}).get('roomId'), _get_sid())


def handle_ticket_claim(data):
    data = data or {}
    _registry().submit_claim(
        data.get('roomId'),
        data.get('player'),
        data.get('ticketIndex'),
        data.get('claimType'),
        sid=_get_sid(),
    )


def handle_toggle_pause(data):
    _registry().toggle_pause((data or {}).get('roomId'), _get_sid())


def register_socketio_handlers(namespace='/ws') -> None:
    """Register Socket.IO event handlers on ``namespace``."""
    from housie import socketio

    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('ping', handle_ping, namespace=namespace)
    socketio.on_event('createRoom', handle_create_room, namespace=namespace)
    socketio.on_event('joinRoom', handle_join_room, namespace=namespace)
    socketio.on_event('rejoinHost', handle_rejoin_host, namespace=namespace)
    socketio.on_event('getAvailableTickets', handle_get_available_tickets, namespace=namespace)
    socketio.on_event('selectTickets', handle_select_tickets, namespace=namespace)
    socketio.on_event('startGame', handle_start_game, namespace=namespace)
    socketio.on_event('ticketClaim', handle_ticket_claim, namespace=namespace)
    socketio.on_event('togglePause', handle_toggle_pause, namespace=namespace)
