import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional

from housie.services.rooms.tickets import Strip, Ticket

if TYPE_CHECKING:
    from housie.services.rooms.scheduler import CallScheduler, CountdownController, HostGraceTimer

# Room lifecycle states
LOBBY = 'lobby'
TICKET_SELECTION = 'ticket_selection'
COUNTDOWN = 'countdown'
CALLING = 'calling'
PAUSED = 'paused'
ENDED = 'ended'

IN_PROGRESS_STATES = (COUNTDOWN, CALLING, PAUSED)


@dataclass
class HostIdentity:
    """Stable host name plus the connection currently bound to it."""
    name: str
    sid: Optional[str] = None

    @property
    def connected(self) -> bool:
        return self.sid is not None


@dataclass
class Player:
    name: str
    sid: Optional[str]
    num_tickets: int = 1
    tickets: List[Ticket] = field(default_factory=list)

    def to_dict(self):
        return {
            'name': self.name,
            'num_tickets': self.num_tickets,
            'ticket_count': len(self.tickets),
        }


@dataclass
class Claim:
    player: str
    ticket_index: int
    claim_type: str

    @property
    def key(self):
        return (self.ticket_index, normalize_claim_type(self.claim_type))

    def to_dict(self):
        return {
            'player': self.player,
            'ticketIndex': self.ticket_index,
            'claimType': self.claim_type,
        }


def normalize_claim_type(claim_type: str) -> str:
    return ' '.join(str(claim_type).split()).casefold()


@dataclass(eq=False)
class Room:
    room_id: str
    host: HostIdentity
    room_name: str = ''
    num_players: Optional[int] = None
    ticket_price: Optional[float] = None
    num_tickets: int = 1
    state: str = LOBBY
    called_numbers: List[int] = field(default_factory=list)
    players: Dict[str, Player] = field(default_factory=dict)
    claims: List[Claim] = field(default_factory=list)
    pending_strips: Dict[str, Strip] = field(default_factory=dict)
    countdown: Optional['CountdownController'] = None
    scheduler: Optional['CallScheduler'] = None
    grace_timer: Optional['HostGraceTimer'] = None
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    @property
    def in_progress(self) -> bool:
        return self.state in IN_PROGRESS_STATES

    @property
    def last_called(self) -> Optional[int]:
        return self.called_numbers[-1] if self.called_numbers else None

    def is_host(self, sid: Optional[str]) -> bool:
        return sid is not None and self.host.sid == sid

    def summary(self):
        """Payload of the ``roomUpdate`` event."""
        return {
            'roomId': self.room_id,
            'host': self.host.name,
            'roomName': self.room_name,
            'numPlayers': self.num_players,
            'ticketPrice': self.ticket_price,
            'numTickets': self.num_tickets,
            'players': list(self.players),
        }

    def to_dict(self):
        payload = self.summary()
        payload.update({
            'state': self.state,
            'hostConnected': self.host.connected,
            'calledNumbers': list(self.called_numbers),
            'lastCalledNumber': self.last_called,
            'players': [p.to_dict() for p in self.players.values()],
            'claims': [c.to_dict() for c in self.claims],
        })
        return payload
