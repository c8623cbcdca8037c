import logging
import random
import threading
from typing import Dict, Iterable, List, Optional

from housie.models import (
    CALLING, COUNTDOWN, ENDED, LOBBY, PAUSED, TICKET_SELECTION,
    HostIdentity, Player, Room,
)
from housie.services.rooms.claims import ClaimValidator, summarize_results
from housie.services.rooms.scheduler import CallScheduler, CountdownController, HostGraceTimer
from housie.services.rooms.tickets import Strip, generate_strip, generate_ticket

logger = logging.getLogger(__name__)

SELECTION_STATES = (LOBBY, TICKET_SELECTION)


def _to_int(value, default=None):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class RoomRegistry:
    """Owns every active room and performs all mutations of room state.

    Operations are keyed by room id. Each one holds the room's lock for its
    whole read-modify-write, so handlers running on different threads never
    interleave inside a room. Unknown rooms and players turn an operation
    into a logged no-op, except joins, which answer with ``joinError``.
    """

    def __init__(self, broadcaster, call_interval=3, countdown_seconds=10, countdown_interval=1,
                 max_tickets=10, strip_attempts=50, host_grace=300, verify_claims=False,
                 start_background_task=None, sleep=None, rng=None):
        self.broadcaster = broadcaster
        self.call_interval = call_interval
        self.countdown_seconds = countdown_seconds
        self.countdown_interval = countdown_interval
        self.max_tickets = max_tickets
        self.strip_attempts = strip_attempts
        self.host_grace = host_grace
        self.start_background_task = start_background_task
        self.sleep = sleep
        self.rng = rng or random
        self.claims = ClaimValidator(self, verify_patterns=verify_claims)
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config, broadcaster, start_background_task=None, sleep=None):
        return cls(
            broadcaster,
            call_interval=float(config.get('CALL_INTERVAL_SEC', 3)),
            countdown_seconds=int(config.get('COUNTDOWN_SEC', 10)),
            countdown_interval=float(config.get('COUNTDOWN_TICK_SEC', 1)),
            max_tickets=int(config.get('MAX_TICKETS_PER_PLAYER', 10)),
            strip_attempts=int(config.get('STRIP_MAX_ATTEMPTS', 50)),
            host_grace=float(config.get('HOST_GRACE_SEC', 300)),
            verify_claims=bool(config.get('VERIFY_CLAIMS', False)),
            start_background_task=start_background_task,
            sleep=sleep,
        )

    # ---- Lookup ----

    def get(self, room_id) -> Optional[Room]:
        if room_id is None:
            return None
        with self._lock:
            return self._rooms.get(str(room_id))

    def rooms(self) -> List[Room]:
        with self._lock:
            return list(self._rooms.values())

    def __len__(self):
        with self._lock:
            return len(self._rooms)

    def _fresh_room_id(self) -> str:
        while True:
            room_id = str(self.rng.randint(1000, 9999))
            if room_id not in self._rooms:
                return room_id

    def _clamp_tickets(self, value, default=1) -> int:
        count = _to_int(value) or default or 1
        return min(max(count, 1), self.max_tickets)

    def _timer_kwargs(self):
        return {'start_background_task': self.start_background_task, 'sleep': self.sleep}

    # ---- Rooms and players ----

    def create_room(self, host, sid, num_players=None, room_name='', ticket_price=None, num_tickets=1) -> Room:
        with self._lock:
            room_id = self._fresh_room_id()
            room = Room(
                room_id=room_id,
                host=HostIdentity(name=host, sid=sid),
                room_name=room_name or '',
                num_players=_to_int(num_players, num_players),
                ticket_price=ticket_price,
                num_tickets=self._clamp_tickets(num_tickets),
            )
            self._rooms[room_id] = room
        logger.info(f"[room-created] room={room_id} host={host}")
        self.broadcaster.enter(sid, room_id)
        self.broadcaster.to_sid(sid, 'roomCreated', {
            'roomId': room_id,
            'host': host,
            'roomName': room.room_name,
            'numPlayers': room.num_players,
            'ticketPrice': room.ticket_price,
            'numTickets': room.num_tickets,
        })
        self.broadcaster.to_room(room_id, 'roomUpdate', room.summary())
        return room

    def join_room(self, room_id, player_name, sid, num_tickets=None) -> Optional[Player]:
        room = self.get(room_id)
        if room is None:
            self.broadcaster.to_sid(sid, 'joinError', 'Room does not exist!')
            return None
        if not player_name:
            self.broadcaster.to_sid(sid, 'joinError', 'Player name is required.')
            return None

        with room.lock:
            count = self._clamp_tickets(num_tickets, default=room.num_tickets)
            player = room.players.get(player_name)
            if player is None:
                player = Player(name=player_name, sid=sid, num_tickets=count)
                room.players[player_name] = player
                logger.info(f"[player-joined] room={room.room_id} player={player_name} tickets={count}")
            else:
                player.sid = sid
                player.num_tickets = count
                logger.info(f"[player-rejoined] room={room.room_id} player={player_name}")
            self.broadcaster.enter(sid, room.room_id)

            if room.state not in SELECTION_STATES:
                if room.in_progress and not player.tickets:
                    player.tickets = [generate_ticket(self.rng) for _ in range(player.num_tickets)]
                self._send_game_state(room, player.sid, tickets=player.tickets)

            self.broadcaster.to_sid(sid, 'roomJoined', {'roomId': room.room_id, 'host': room.host.name})
            self.broadcaster.to_room(room.room_id, 'roomUpdate', room.summary())
            return player

    def rejoin_host(self, room_id, host_name, sid) -> bool:
        """Re-bind the host's logical identity to a new connection."""
        room = self.get(room_id)
        if room is None:
            self.broadcaster.to_sid(sid, 'joinError', 'Room does not exist!')
            return False
        with room.lock:
            if host_name != room.host.name:
                self.broadcaster.to_sid(sid, 'joinError', 'Only the host can rejoin as host.')
                return False
            room.host.sid = sid
            if room.grace_timer is not None:
                room.grace_timer.cancel()
            logger.info(f"[host-rejoined] room={room.room_id} host={host_name}")
            self.broadcaster.enter(sid, room.room_id)
            self.broadcaster.to_sid(sid, 'roomJoined', {'roomId': room.room_id, 'host': room.host.name})
            if room.state not in SELECTION_STATES:
                self._send_game_state(room, sid)
            self.broadcaster.to_room(room.room_id, 'roomUpdate', room.summary())
            return True

    def _send_game_state(self, room, sid, tickets=None):
        if tickets is not None:
            self.broadcaster.to_sid(sid, 'yourTickets', {
                'roomId': room.room_id,
                'tickets': tickets,
                'calledNumbers': list(room.called_numbers),
            })
        if room.last_called is not None:
            self.broadcaster.to_sid(sid, 'lastCalledNumber', room.last_called)
        if room.state == PAUSED:
            self.broadcaster.to_sid(sid, 'gamePaused')

    # ---- Ticket selection ----

    def _can_select(self, room, player) -> bool:
        return room.state in SELECTION_STATES or (room.state == ENDED and not player.tickets)

    def offer_strip(self, room_id, player_name, sid) -> Optional[Strip]:
        """Generate a fresh strip and offer it to the player to pick from."""
        room = self.get(room_id)
        if room is None:
            logger.info(f"[strip-skip] unknown room={room_id}")
            return None
        with room.lock:
            player = room.players.get(player_name)
            if player is None or not self._can_select(room, player):
                logger.info(f"[strip-skip] room={room.room_id} player={player_name} state={room.state}")
                return None
            strip = generate_strip(self.rng, max_attempts=self.strip_attempts)
            room.pending_strips[player_name] = strip
            if room.state == LOBBY:
                room.state = TICKET_SELECTION
            self.broadcaster.to_sid(sid, 'availableTickets', strip)
            return strip

    def select_tickets(self, room_id, player_name, indices: Iterable, sid=None) -> Optional[list]:
        room = self.get(room_id)
        if room is None:
            return None
        with room.lock:
            player = room.players.get(player_name)
            strip = room.pending_strips.get(player_name)
            if player is None or strip is None or not self._can_select(room, player):
                logger.info(f"[select-skip] room={room.room_id} player={player_name}")
                return None
            chosen = []
            for index in indices or []:
                index = _to_int(index)
                if index is not None and 0 <= index < len(strip) and index not in chosen:
                    chosen.append(index)
            if not chosen:
                logger.info(f"[select-skip] room={room.room_id} player={player_name} no valid indices")
                return None
            player.tickets = [strip[i] for i in chosen[:self.max_tickets]]
            del room.pending_strips[player_name]
            logger.info(f"[tickets-selected] room={room.room_id} player={player_name} indices={chosen}")
            self.broadcaster.to_sid(sid or player.sid, 'yourTickets', {
                'roomId': room.room_id,
                'tickets': player.tickets,
                'calledNumbers': list(room.called_numbers),
            })
            return player.tickets

    # ---- Lifecycle ----

    def start_game(self, room_id, sid) -> bool:
        room = self.get(room_id)
        if room is None:
            return False
        with room.lock:
            if not room.is_host(sid):
                logger.warning(f"[start-denied] room={room.room_id} sid={sid} is not the host")
                return False
            self._cancel_processes(room)
            room.called_numbers = []
            room.claims = []
            room.pending_strips.clear()
            for player in room.players.values():
                if not player.tickets:
                    player.tickets = [generate_ticket(self.rng)]

            room.state = COUNTDOWN
            logger.info(f"[game-start] room={room.room_id} players={len(room.players)}")
            self.broadcaster.to_room(room.room_id, 'gameStarted', {
                'roomId': room.room_id,
                'message': f"Game is starting in {self.countdown_seconds} seconds!",
                'countdown': self.countdown_seconds,
            })
            for player in room.players.values():
                self.broadcaster.to_sid(player.sid, 'yourTickets', {
                    'roomId': room.room_id,
                    'tickets': player.tickets,
                    'calledNumbers': [],
                })

            if self.countdown_seconds <= 0:
                self.begin_calling(room)
                return True
            room.countdown = CountdownController(
                self, room,
                seconds=self.countdown_seconds,
                interval=self.countdown_interval,
                **self._timer_kwargs()
            )
            room.countdown.start()
            return True

    def begin_calling(self, room: Room) -> None:
        with room.lock:
            room.state = CALLING
            if room.scheduler is None:
                room.scheduler = CallScheduler(self, room, interval=self.call_interval, rng=self.rng, **self._timer_kwargs())
            room.scheduler.start()

    def toggle_pause(self, room_id, sid) -> Optional[str]:
        room = self.get(room_id)
        if room is None:
            return None
        with room.lock:
            if not room.is_host(sid):
                logger.warning(f"[pause-denied] room={room.room_id} sid={sid} is not the host")
                return None
            if room.state == CALLING:
                if room.scheduler is not None:
                    room.scheduler.cancel()
                room.state = PAUSED
                logger.info(f"[game-paused] room={room.room_id} called={len(room.called_numbers)}")
                self.broadcaster.to_room(room.room_id, 'gamePaused')
            elif room.state == PAUSED:
                logger.info(f"[game-resumed] room={room.room_id} called={len(room.called_numbers)}")
                self.broadcaster.to_room(room.room_id, 'gameResumed')
                self.begin_calling(room)
            else:
                return None
            return room.state

    def submit_claim(self, room_id, player_name, ticket_index, claim_type, sid=None) -> bool:
        room = self.get(room_id)
        if room is None:
            return False
        return self.claims.submit(room, player_name, ticket_index, claim_type, sid)

    def end_game(self, room: Room, reason='') -> Optional[List[dict]]:
        """Move the room to ``ended`` and broadcast the results, exactly once."""
        with room.lock:
            if room.state == ENDED:
                return None
            self._cancel_processes(room)
            room.state = ENDED
            results = summarize_results(room)
            logger.info(f"[game-ended] room={room.room_id} reason={reason} called={len(room.called_numbers)}")
            self.broadcaster.to_room(room.room_id, 'endGame', {'results': results})
            return results

    def _cancel_processes(self, room: Room) -> None:
        for handle in (room.countdown, room.scheduler):
            if handle is not None:
                handle.cancel()

    # ---- Connections ----

    def disconnect(self, sid) -> None:
        """Forget a lost connection; a lost host pauses its running games."""
        for room in self.rooms():
            with room.lock:
                for player in room.players.values():
                    if player.sid == sid:
                        player.sid = None
                if room.host.sid != sid:
                    continue
                room.host.sid = None
                self._cancel_processes(room)
                logger.info(f"[host-disconnected] room={room.room_id} state={room.state}")
                if room.state in (COUNTDOWN, CALLING):
                    room.state = PAUSED
                    self.broadcaster.to_room(room.room_id, 'gamePaused')
                if room.in_progress and self.host_grace > 0:
                    if room.grace_timer is not None:
                        room.grace_timer.cancel()
                    room.grace_timer = HostGraceTimer(self, room, self.host_grace, **self._timer_kwargs())
                    room.grace_timer.start()

    def shutdown(self) -> None:
        """Cancel every room's timers; used at process teardown."""
        for room in self.rooms():
            with room.lock:
                self._cancel_processes(room)
                if room.grace_timer is not None:
                    room.grace_timer.cancel()
