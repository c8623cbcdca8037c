import random

import pytest

from housie.services.rooms import tickets
from housie.services.rooms.tickets import (
    COLUMN_BANDS,
    StripGenerationError,
    band_of,
    format_ticket,
    generate_strip,
    generate_ticket,
    ticket_numbers,
    validate_strip,
    validate_ticket,
)


def _assert_ticket_shape(ticket):
    assert len(ticket) == 3
    for row in ticket:
        assert len(row) == 9
        assert sum(1 for cell in row if cell is not None) == 5
    for col, (lo, hi) in enumerate(COLUMN_BANDS):
        values = [ticket[r][col] for r in range(3) if ticket[r][col] is not None]
        assert all(lo <= v <= hi for v in values)
        assert values == sorted(values)
        assert len(set(values)) == len(values)


def test_strip_covers_every_number_once():
    strip = generate_strip(random.Random(42))
    assert len(strip) == 6
    numbers = [n for ticket in strip for n in ticket_numbers(ticket)]
    assert sorted(numbers) == list(range(1, 91))
    for ticket in strip:
        assert len(ticket_numbers(ticket)) == 15
        _assert_ticket_shape(ticket)
        for col in range(9):
            used = sum(1 for r in range(3) if ticket[r][col] is not None)
            assert 1 <= used <= 3


def test_thousand_strips_are_valid():
    rng = random.Random(2024)
    for _ in range(1000):
        strip = generate_strip(rng)
        ok, message = validate_strip(strip)
        assert ok, message
        filled = {frozenset(ticket_numbers(t)) for t in strip}
        assert len(filled) == 6


def test_strip_uses_module_random_by_default():
    ok, message = validate_strip(generate_strip())
    assert ok, message


def test_band_of_edges():
    assert band_of(1) == 0
    assert band_of(9) == 0
    assert band_of(10) == 1
    assert band_of(79) == 7
    assert band_of(80) == 8
    assert band_of(90) == 8


def test_generate_strip_gives_up_after_max_attempts(monkeypatch):
    calls = []

    def broken(rng):
        calls.append(rng)
        raise StripGenerationError('rows could not be balanced: [6, 5, 4]')

    monkeypatch.setattr(tickets, '_build_strip', broken)
    with pytest.raises(StripGenerationError) as excinfo:
        generate_strip(max_attempts=3)
    assert len(calls) == 3
    assert 'after 3 attempts' in str(excinfo.value)


def test_generate_strip_rejects_malformed_build(monkeypatch):
    strip = generate_strip(random.Random(5))
    row = strip[0][0]
    col = next(c for c, cell in enumerate(row) if cell is not None)
    # reuse a number from the same band of another ticket
    row[col] = next(strip[1][r][col] for r in range(3) if strip[1][r][col] is not None)
    monkeypatch.setattr(tickets, '_build_strip', lambda rng: strip)
    with pytest.raises(StripGenerationError):
        generate_strip(max_attempts=2)


def test_leftover_units_are_settled_through_a_full_ticket():
    full = [2, 2, 2, 2, 2, 1, 1, 1, 2]
    short = [1, 1, 1, 1, 1, 2, 2, 2, 3]
    counts = [list(full) for _ in range(5)] + [list(short)]
    band_totals = [sum(row[b] for row in counts) for b in range(9)]
    leftovers = [0] * 8 + [1]

    tickets._settle_leftovers(counts, leftovers, random.Random(3))

    assert leftovers == [0] * 9
    assert all(sum(row) == 15 for row in counts)
    assert all(1 <= c <= 3 for row in counts for c in row)
    after = [sum(row[b] for row in counts) for b in range(9)]
    assert after[8] == band_totals[8] + 1
    assert after[:8] == band_totals[:8]


def test_place_rows_balances_five_per_row():
    columns = [[1, 2, 3], [10, 11, 12], [20], [30], [40], [50], [60], [70, 71], [80, 81]]
    grid = tickets._place_rows(columns, random.Random(9))
    _assert_ticket_shape(grid)
    assert sorted(ticket_numbers(grid)) == sorted(n for col in columns for n in col)


def _unbalanced_grid():
    return [
        [1, 10, 20, 30, 40, 50, 60, None, None],
        [2, 11, None, None, None, None, None, 70, None],
        [None, 12, 21, None, None, None, 61, 71, 80],
    ]


def test_row_rebalancing_moves_values_and_keeps_columns_sorted():
    grid = _unbalanced_grid()
    before = sorted(ticket_numbers(grid))
    tickets._rebalance_rows(grid, random.Random(4), max_moves=27)
    ok, message = validate_ticket(grid)
    assert ok, message
    assert sorted(ticket_numbers(grid)) == before


def test_row_rebalancing_is_bounded():
    with pytest.raises(StripGenerationError):
        tickets._rebalance_rows(_unbalanced_grid(), random.Random(4), max_moves=1)


def test_fallback_ticket_shape():
    rng = random.Random(11)
    for _ in range(200):
        ticket = generate_ticket(rng)
        ok, message = validate_ticket(ticket)
        assert ok, message
        assert len(ticket_numbers(ticket)) == 15


def test_validate_strip_reports_problems():
    strip = generate_strip(random.Random(8))
    assert validate_strip(strip[:5]) == (False, 'strip must contain 6 tickets')

    broken = [[list(row) for row in ticket] for ticket in strip]
    row = broken[0][0]
    col = next(c for c, cell in enumerate(row) if cell is not None)
    row[col] = None
    ok, message = validate_strip(broken)
    assert not ok
    assert 'row 0 has 4 numbers' in message


def test_validate_ticket_catches_descending_column():
    ticket = [
        [5, 10, 20, 30, 40, None, None, None, None],
        [4, None, None, None, None, 50, 60, 70, 81],
        [None, 11, 21, None, None, None, 61, 71, 82],
    ]
    ok, message = validate_ticket(ticket)
    assert not ok
    assert 'column 0' in message


def test_validate_ticket_catches_value_in_wrong_band():
    ticket = [
        [1, 10, 35, 30, 40, None, None, None, None],
        [4, None, None, None, None, 50, 60, 70, 81],
        [None, 11, 21, None, None, None, 61, 71, 90],
    ]
    assert validate_ticket(ticket) == (False, 'column 2 has a value outside 20..29')
    ticket[0][2] = 20
    assert validate_ticket(ticket) == (True, 'ok')


def test_format_ticket():
    ticket = [
        [1, None, 23, None, 45, None, 67, None, 90],
        [None, 12, None, 34, None, 56, None, 78, None],
        [9, None, 29, None, 49, None, 69, None, 89],
    ]
    lines = format_ticket(ticket).splitlines()
    assert len(lines) == 3
    assert lines[0] == ' 1  . 23  . 45  . 67  . 90'
