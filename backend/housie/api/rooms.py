from flask import Blueprint, current_app, jsonify

from housie.services.rooms.tickets import StripGenerationError, generate_strip

rooms = Blueprint('rooms', __name__)


@rooms.route('/rooms/<string:room_id>/state', methods=['GET'])
def get_room_state(room_id):
    room = current_app.extensions['rooms'].get(room_id)
    if room is None:
        return jsonify({'error': 'Room not found'}), 404
    with room.lock:
        payload = room.to_dict()
    payload['timers'] = {
        'call_interval': current_app.config.get('CALL_INTERVAL_SEC', 3),
        'countdown': current_app.config.get('COUNTDOWN_SEC', 10),
    }
    return jsonify(payload)


@rooms.route('/tickets/strip', methods=['GET'])
def preview_strip():
    """
    Returns a freshly generated strip of six tickets (not bound to any room).
    """
    try:
        strip = generate_strip(max_attempts=current_app.config.get('STRIP_MAX_ATTEMPTS', 50))
    except StripGenerationError as exc:
        current_app.logger.exception(f"[strip-failed] {exc}")
        return jsonify({'error': 'Could not generate a ticket strip'}), 500
    return jsonify({'strip': strip})
