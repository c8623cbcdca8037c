"""Ticket and strip generation for 90-ball housie.

A strip is six 3x9 tickets that between them hold every number 1..90 exactly
once. Column ``c`` of a ticket (a "band") only holds numbers from
``COLUMN_BANDS[c]``, every row holds exactly five numbers, and the numbers of a
column read top to bottom in ascending order.
"""

import logging
import random
from typing import List, Optional, Sequence, Tuple

Ticket = List[List[Optional[int]]]
Strip = List[Ticket]

ROWS = 3
COLUMNS = 9
TICKETS_PER_STRIP = 6
NUMBERS_PER_ROW = 5
NUMBERS_PER_TICKET = ROWS * NUMBERS_PER_ROW
MAX_PER_COLUMN = 3

# Inclusive value range of each column band.
COLUMN_BANDS: List[Tuple[int, int]] = [
    (1, 9),
    (10, 19),
    (20, 29),
    (30, 39),
    (40, 49),
    (50, 59),
    (60, 69),
    (70, 79),
    (80, 90),
]

logger = logging.getLogger(__name__)


class StripGenerationError(RuntimeError):
    """Raised when a strip cannot be built without breaking a ticket invariant."""


def band_of(number: int) -> int:
    """Return the column band index a number belongs to."""
    if number == 90:
        return COLUMNS - 1
    return number // 10


def band_size(band: int) -> int:
    lo, hi = COLUMN_BANDS[band]
    return hi - lo + 1


# ---- Strip generation ----

def generate_strip(rng=None, max_attempts: int = 50) -> Strip:
    """Generate one strip of six tickets covering 1..90 exactly once.

    ``rng`` is anything exposing the ``random`` module API (``random.Random``
    instances included) and defaults to the module itself. A failed attempt is
    logged and retried; ``StripGenerationError`` is raised once
    ``max_attempts`` attempts have failed. A returned strip always passes
    ``validate_strip``.
    """
    rng = rng or random
    last_error = 'no attempt made'
    for attempt in range(1, max_attempts + 1):
        try:
            strip = _build_strip(rng)
        except StripGenerationError as exc:
            last_error = str(exc)
            logger.warning(f"[strip-retry] attempt={attempt} reason={exc}")
            continue
        ok, message = validate_strip(strip)
        if ok:
            return strip
        last_error = message
        logger.error(f"[strip-invalid] attempt={attempt} reason={message}")
    raise StripGenerationError(f"Failed to generate strip after {max_attempts} attempts: {last_error}")


def _build_strip(rng) -> Strip:
    counts = _allocate_counts(rng)
    columns = _draw_columns(counts, rng)
    return [_place_rows(ticket_columns, rng) for ticket_columns in columns]


def _allocate_counts(rng) -> List[List[int]]:
    """Decide how many numbers each ticket takes from each band.

    Every ticket starts with one number per band and has six extra units to
    spend. Extras go to the tickets with the most spare capacity first so the
    last bands still find room.
    """
    counts = [[1] * COLUMNS for _ in range(TICKETS_PER_STRIP)]
    capacity = [NUMBERS_PER_TICKET - COLUMNS] * TICKETS_PER_STRIP
    leftovers = [0] * COLUMNS

    for band in range(COLUMNS):
        extras = band_size(band) - TICKETS_PER_STRIP
        while extras > 0:
            eligible = [
                t for t in range(TICKETS_PER_STRIP)
                if capacity[t] > 0 and counts[t][band] < MAX_PER_COLUMN
            ]
            if not eligible:
                break
            most = max(capacity[t] for t in eligible)
            ticket = rng.choice([t for t in eligible if capacity[t] == most])
            counts[ticket][band] += 1
            capacity[ticket] -= 1
            extras -= 1
        leftovers[band] = extras

    if any(leftovers):
        _settle_leftovers(counts, leftovers, rng)

    for ticket, row in enumerate(counts):
        if sum(row) != NUMBERS_PER_TICKET:
            raise StripGenerationError(f"ticket {ticket} holds {sum(row)} numbers after allocation")
    return counts


def _settle_leftovers(counts: List[List[int]], leftovers: List[int], rng) -> None:
    """Place band units the greedy pass could not, keeping band totals intact.

    A unit goes straight to a short ticket when that ticket has room in the
    band. Otherwise a full ticket takes the unit and hands one of its units in
    another band over to the short ticket.
    """
    for band in range(COLUMNS):
        while leftovers[band] > 0:
            short = [t for t in range(TICKETS_PER_STRIP) if sum(counts[t]) < NUMBERS_PER_TICKET]
            direct = [t for t in short if counts[t][band] < MAX_PER_COLUMN]
            if direct:
                counts[rng.choice(direct)][band] += 1
                leftovers[band] -= 1
                continue

            moves = [
                (donor, receiver, other)
                for donor in range(TICKETS_PER_STRIP)
                if sum(counts[donor]) == NUMBERS_PER_TICKET and counts[donor][band] < MAX_PER_COLUMN
                for receiver in short
                for other in range(COLUMNS)
                if other != band and counts[donor][other] > 1 and counts[receiver][other] < MAX_PER_COLUMN
            ]
            if not moves:
                raise StripGenerationError(f"no ticket can absorb a unit of band {band}")
            donor, receiver, other = rng.choice(moves)
            counts[donor][other] -= 1
            counts[receiver][other] += 1
            counts[donor][band] += 1
            leftovers[band] -= 1


def _draw_columns(counts: List[List[int]], rng) -> List[List[List[int]]]:
    """Hand out each band's shuffled values according to ``counts``."""
    pools = []
    for lo, hi in COLUMN_BANDS:
        pool = list(range(lo, hi + 1))
        rng.shuffle(pool)
        pools.append(pool)

    columns = []
    for ticket_counts in counts:
        ticket_columns = []
        for band, need in enumerate(ticket_counts):
            if len(pools[band]) < need:
                raise StripGenerationError(f"column pool {band} depleted")
            ticket_columns.append(sorted(pools[band].pop() for _ in range(need)))
        columns.append(ticket_columns)

    remaining = [band for band, pool in enumerate(pools) if pool]
    if remaining:
        raise StripGenerationError(f"column pools {remaining} not exhausted")
    return columns


def _place_rows(columns: Sequence[Sequence[int]], rng, max_moves: int = ROWS * COLUMNS) -> Ticket:
    """Lay one ticket's column values out on a 3x9 grid with five per row."""
    grid: Ticket = [[None] * COLUMNS for _ in range(ROWS)]
    filled = [0] * ROWS

    order = list(range(COLUMNS))
    rng.shuffle(order)
    for band in order:
        values = columns[band]
        # k values go to the k least-filled rows, smallest value on top
        rows = sorted(range(ROWS), key=lambda r: (filled[r], rng.random()))[:len(values)]
        for row, value in zip(sorted(rows), values):
            grid[row][band] = value
            filled[row] += 1

    _rebalance_rows(grid, rng, max_moves)
    return grid


def _rebalance_rows(grid: Ticket, rng, max_moves: int) -> None:
    """Move single values from over-full rows to short rows until all hold five."""
    for _ in range(max_moves):
        filled = [_row_count(row) for row in grid]
        if all(n == NUMBERS_PER_ROW for n in filled):
            return
        moves = [
            (src, dst, col)
            for src in range(ROWS) if filled[src] > NUMBERS_PER_ROW
            for dst in range(ROWS) if filled[dst] < NUMBERS_PER_ROW
            for col in range(COLUMNS)
            if grid[src][col] is not None and grid[dst][col] is None
        ]
        if not moves:
            break
        src, dst, col = rng.choice(moves)
        grid[dst][col], grid[src][col] = grid[src][col], None
        _sort_column(grid, col)

    filled = [_row_count(row) for row in grid]
    if any(n != NUMBERS_PER_ROW for n in filled):
        raise StripGenerationError(f"rows could not be balanced: {filled}")


def _row_count(row: Sequence[Optional[int]]) -> int:
    return sum(1 for cell in row if cell is not None)


def _sort_column(grid: Ticket, col: int) -> None:
    rows = [r for r in range(ROWS) if grid[r][col] is not None]
    values = sorted(grid[r][col] for r in rows)
    for row, value in zip(rows, values):
        grid[row][col] = value


# ---- Fallback single ticket ----

def generate_ticket(rng=None) -> Ticket:
    """Generate a single stand-alone ticket.

    Only used for players who reach a game without a ticket from a strip.
    Rows hold five numbers each and columns ascend, but a column may be empty
    and there is no 1..90 coverage guarantee.
    """
    rng = rng or random
    mask = [[0] * COLUMNS for _ in range(ROWS)]
    for row in mask:
        for col in rng.sample(range(COLUMNS), NUMBERS_PER_ROW):
            row[col] = 1

    grid: Ticket = [[None] * COLUMNS for _ in range(ROWS)]
    for col, (lo, hi) in enumerate(COLUMN_BANDS):
        rows = [r for r in range(ROWS) if mask[r][col]]
        values = sorted(rng.sample(range(lo, hi + 1), len(rows)))
        for row, value in zip(rows, values):
            grid[row][col] = value
    return grid


# ---- Validation and display ----

def validate_ticket(ticket: Ticket) -> Tuple[bool, str]:
    """Check the shape, row totals, band ranges and column order of a ticket."""
    if not isinstance(ticket, list) or len(ticket) != ROWS:
        return False, f"ticket must have {ROWS} rows"
    for r, row in enumerate(ticket):
        if not isinstance(row, list) or len(row) != COLUMNS:
            return False, f"row {r} must have {COLUMNS} cells"
        if _row_count(row) != NUMBERS_PER_ROW:
            return False, f"row {r} has {_row_count(row)} numbers"
    for col in range(COLUMNS):
        lo, hi = COLUMN_BANDS[col]
        values = [ticket[r][col] for r in range(ROWS) if ticket[r][col] is not None]
        if any(not 1 <= v <= 90 or band_of(v) != col for v in values):
            return False, f"column {col} has a value outside {lo}..{hi}"
        if any(a >= b for a, b in zip(values, values[1:])):
            return False, f"column {col} is not strictly ascending"
    return True, 'ok'


def validate_strip(strip: Strip) -> Tuple[bool, str]:
    """Check every ticket plus the strip-wide 1..90 coverage rules."""
    if not isinstance(strip, list) or len(strip) != TICKETS_PER_STRIP:
        return False, f"strip must contain {TICKETS_PER_STRIP} tickets"

    seen = set()
    band_totals = [0] * COLUMNS
    for t, ticket in enumerate(strip):
        ok, message = validate_ticket(ticket)
        if not ok:
            return False, f"ticket {t}: {message}"
        for col in range(COLUMNS):
            values = [ticket[r][col] for r in range(ROWS) if ticket[r][col] is not None]
            if not 1 <= len(values) <= MAX_PER_COLUMN:
                return False, f"ticket {t}: column {col} has {len(values)} numbers"
            band_totals[col] += len(values)
            for value in values:
                if value in seen:
                    return False, f"duplicate number {value} in strip"
                seen.add(value)

    if seen != set(range(1, 91)):
        missing = sorted(set(range(1, 91)) - seen)
        return False, f"strip is missing numbers {missing[:5]}"
    expected = [band_size(b) for b in range(COLUMNS)]
    if band_totals != expected:
        return False, f"band totals {band_totals} != {expected}"
    return True, 'ok'


def ticket_numbers(ticket: Ticket) -> List[int]:
    return [cell for row in ticket for cell in row if cell is not None]


def format_ticket(ticket: Ticket) -> str:
    """Render a ticket as three fixed-width text lines."""
    return '\n'.join(
        ' '.join(f"{cell:>2}" if cell is not None else ' .' for cell in row)
        for row in ticket
    )
