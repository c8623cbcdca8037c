import logging
import random

from housie.models import CALLING, COUNTDOWN, ENDED

logger = logging.getLogger(__name__)

TOTAL_NUMBERS = 90


class TimedProcess:
    """A cancellable periodic process owned by one room.

    ``start`` spawns a worker that sleeps ``interval`` seconds between calls
    to ``step`` until ``step`` returns False or the process is cancelled.
    Every start and cancel bumps ``generation``; a worker (or a direct
    ``step`` call) carrying an older generation does nothing.

    When ``start_background_task`` is None no worker is spawned and the
    owner drives ``step`` itself, which is how tests run timers.
    """

    name = 'timer'

    def __init__(self, registry, room, interval, start_background_task=None, sleep=None):
        self.registry = registry
        self.room = room
        self.interval = interval
        self._start_background_task = start_background_task
        self._sleep = sleep
        self.generation = 0
        self.active = False

    def start(self):
        self.generation += 1
        self.active = True
        logger.info(f"[timer-set] room={self.room.room_id} timer={self.name} interval={self.interval}s generation={self.generation}")
        if self._start_background_task is not None:
            self._start_background_task(self._run, self.generation)

    def cancel(self):
        if not self.active:
            return
        self.generation += 1
        self.active = False
        logger.info(f"[timer-cancel] room={self.room.room_id} timer={self.name}")

    def is_stale(self, generation):
        return not self.active or (generation is not None and generation != self.generation)

    def _run(self, generation):
        while True:
            self._sleep(self.interval)
            if self.is_stale(generation):
                logger.info(f"[timer-abort] room={self.room.room_id} timer={self.name} generation={generation}")
                return
            if not self.step(generation):
                return

    def step(self, generation=None):
        raise NotImplementedError


class CountdownController(TimedProcess):
    """Counts ``seconds`` down to 0, then hands the room over to calling."""

    name = 'countdown'

    def __init__(self, registry, room, seconds=10, interval=1, **kwargs):
        super().__init__(registry, room, interval, **kwargs)
        self.seconds = seconds
        self.remaining = seconds

    def start(self):
        self.remaining = self.seconds
        self.registry.broadcaster.to_room(self.room.room_id, 'countdown', self.remaining)
        super().start()

    def step(self, generation=None):
        with self.room.lock:
            if self.is_stale(generation) or self.room.state != COUNTDOWN:
                return False
            self.remaining -= 1
            if self.remaining > 0:
                self.registry.broadcaster.to_room(self.room.room_id, 'countdown', self.remaining)
                return True
            self.active = False
            self.registry.broadcaster.to_room(self.room.room_id, 'countdown', 0)
            self.registry.begin_calling(self.room)
            return False


class CallScheduler(TimedProcess):
    """Draws one un-called number per tick until all 90 are out."""

    name = 'caller'

    def __init__(self, registry, room, interval=3, rng=None, **kwargs):
        super().__init__(registry, room, interval, **kwargs)
        self.rng = rng or random

    def step(self, generation=None):
        return self.tick(generation)

    def tick(self, generation=None):
        room = self.room
        with room.lock:
            if self.is_stale(generation) or room.state != CALLING:
                return False
            called = set(room.called_numbers)
            remaining = [n for n in range(1, TOTAL_NUMBERS + 1) if n not in called]
            if not remaining:
                self.active = False
                self.registry.end_game(room, reason='exhausted')
                return False
            number = self.rng.choice(remaining)
            room.called_numbers.append(number)
            self.registry.broadcaster.to_room(room.room_id, 'numberCalled', number, list(room.called_numbers))
            if len(room.called_numbers) >= TOTAL_NUMBERS:
                self.active = False
                self.registry.end_game(room, reason='exhausted')
                return False
            return True


class HostGraceTimer(TimedProcess):
    """One-shot check that ends a game whose host never came back."""

    name = 'host-grace'

    def step(self, generation=None):
        room = self.room
        with room.lock:
            if self.is_stale(generation):
                return False
            self.active = False
            if room.host.connected or room.state == ENDED:
                return False
            logger.info(f"[host-abandoned] room={room.room_id} host={room.host.name} state={room.state}")
            if room.in_progress:
                self.registry.end_game(room, reason='host-abandoned')
            return False
