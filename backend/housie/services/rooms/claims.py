import logging
from typing import Iterable, List, Optional

from housie.models import CALLING, ENDED, PAUSED, Claim, Room, normalize_claim_type
from housie.services.rooms.tickets import Ticket, ticket_numbers

logger = logging.getLogger(__name__)

TERMINAL_CLAIM = 'full house'

# Claims count only once number calling has begun
CLAIMABLE_STATES = (CALLING, PAUSED)


def is_terminal(claim_type: str) -> bool:
    return normalize_claim_type(claim_type) == TERMINAL_CLAIM


def summarize_results(room: Room) -> List[dict]:
    """Per player: ticket count and the claim types won on each ticket."""
    results = []
    for player in room.players.values():
        own = [c for c in room.claims if c.player == player.name]
        per_ticket = [
            [c.claim_type for c in own if c.ticket_index == index]
            for index in range(len(player.tickets))
        ]
        results.append({
            'name': player.name,
            'tickets': len(player.tickets),
            'claims': per_ticket,
        })
    return results


def _row_complete(row, called) -> bool:
    return all(cell in called for cell in row if cell is not None)


def pattern_complete(ticket: Ticket, claim_type: str, called: Iterable[int]) -> Optional[bool]:
    """Whether ``claim_type`` is complete on ``ticket``; None for unknown types."""
    called = set(called)
    kind = normalize_claim_type(claim_type)
    if kind == 'early five':
        return sum(1 for n in ticket_numbers(ticket) if n in called) >= 5
    if kind == 'top line':
        return _row_complete(ticket[0], called)
    if kind == 'middle line':
        return _row_complete(ticket[1], called)
    if kind == 'bottom line':
        return _row_complete(ticket[2], called)
    if kind == 'four corners':
        corners = []
        for row in (ticket[0], ticket[-1]):
            numbers = [cell for cell in row if cell is not None]
            corners.extend([numbers[0], numbers[-1]])
        return all(n in called for n in corners)
    if kind == TERMINAL_CLAIM:
        return all(n in called for n in ticket_numbers(ticket))
    return None


class ClaimValidator:
    """Accepts or rejects claims for a room and detects the terminal claim.

    A ``(ticket_index, claim_type)`` pair is honoured once per room, whoever
    claims it. Pattern correctness is only checked when ``verify_patterns``
    is on; otherwise the claim is trusted as sent by the client.
    """

    def __init__(self, registry, verify_patterns=False):
        self.registry = registry
        self.verify_patterns = verify_patterns

    def _reject(self, room, sid, ticket_index, claim_type, message):
        logger.info(f"[claim-rejected] room={room.room_id} ticket={ticket_index} type={claim_type} reason={message}")
        self.registry.broadcaster.to_sid(sid, 'claimRejected', {
            'ticketIndex': ticket_index,
            'claimType': claim_type,
            'message': message,
        })
        return False

    def submit(self, room: Room, player_name, ticket_index, claim_type, sid=None) -> bool:
        """Record a claim and broadcast the outcome. Returns True if approved."""
        with room.lock:
            player = room.players.get(player_name)
            if player is None:
                logger.info(f"[claim-skip] room={room.room_id} unknown player={player_name}")
                return False
            try:
                ticket_index = int(ticket_index)
            except (TypeError, ValueError):
                logger.warning(f"[claim-skip] room={room.room_id} player={player_name} bad ticket index={ticket_index!r}")
                return False
            if not claim_type:
                logger.warning(f"[claim-skip] room={room.room_id} player={player_name} missing claim type")
                return False
            if not 0 <= ticket_index < len(player.tickets):
                logger.warning(f"[claim-skip] room={room.room_id} player={player_name} no ticket index={ticket_index}")
                return False
            if sid is None:
                sid = player.sid

            if room.state == ENDED:
                return self._reject(room, sid, ticket_index, claim_type, 'The game has ended.')
            if room.state not in CLAIMABLE_STATES:
                return self._reject(room, sid, ticket_index, claim_type, 'The game has not started.')

            candidate = Claim(player=player_name, ticket_index=ticket_index, claim_type=claim_type)
            if any(c.key == candidate.key for c in room.claims):
                return self._reject(room, sid, ticket_index, claim_type, f"{claim_type} already claimed for this ticket!")

            if self.verify_patterns:
                message = self._verify(room, player, ticket_index, claim_type)
                if message:
                    return self._reject(room, sid, ticket_index, claim_type, message)

            room.claims.append(candidate)
            logger.info(f"[claim-approved] room={room.room_id} player={player_name} ticket={ticket_index} type={claim_type}")
            self.registry.broadcaster.to_room(room.room_id, 'claimApproved', {
                'player': player_name,
                'ticketIndex': ticket_index,
                'claimType': claim_type,
            })

            if is_terminal(claim_type):
                self.registry.end_game(room, reason='full-house')
            return True

    def _verify(self, room, player, ticket_index, claim_type) -> Optional[str]:
        complete = pattern_complete(player.tickets[ticket_index], claim_type, room.called_numbers)
        if complete is None:
            return f"Unknown claim type {claim_type}."
        if not complete:
            return f"{claim_type} is not complete on this ticket."
        return None
