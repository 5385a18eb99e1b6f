"""Shared pytest fixtures: sample sheet data and an in-memory Sheets service."""

import re
from unittest.mock import MagicMock

import pytest

from autotag.config import TRANSACTION_COLUMNS, RULE_COLUMNS

_RANGE = re.compile(
    r"^'(?P<sheet>[^']+)'!(?P<c1>[A-Z]*)(?P<r1>\d*):(?P<c2>[A-Z]*)(?P<r2>\d*)$"
)


def _letter_to_index(letter: str) -> int:
    index = 0
    for ch in letter:
        index = index * 26 + (ord(ch) - 64)
    return index - 1


def _trim(rows):
    """Drop trailing blank cells and rows the way the Sheets API does."""
    trimmed = []
    for row in rows:
        row = list(row)
        while row and row[-1] in ('', None):
            row.pop()
        trimmed.append(row)
    while trimmed and not trimmed[-1]:
        trimmed.pop()
    return trimmed


def read_range(tabs, range_name, major_dimension='ROWS'):
    match = _RANGE.match(range_name)
    assert match, f"unsupported range {range_name}"
    data = tabs[match.group('sheet')]

    first_row = int(match.group('r1') or 1)
    last_row = int(match.group('r2') or len(data))
    first_col = _letter_to_index(match.group('c1')) if match.group('c1') else 0
    last_col = _letter_to_index(match.group('c2')) + 1 if match.group('c2') else None

    rows = [row[first_col:last_col] for row in data[first_row - 1:last_row]]
    if major_dimension == 'COLUMNS':
        width = max((len(row) for row in rows), default=0)
        padded = [list(row) + [''] * (width - len(row)) for row in rows]
        rows = [list(column) for column in zip(*padded)]
    return _trim(rows)


class FakeSheetsService:
    """Serves values().get from in-memory tabs and records update calls."""

    def __init__(self, tabs, title='Budget'):
        self.tabs = tabs
        self.reads = []
        self.mock = MagicMock()

        spreadsheets = self.mock.spreadsheets.return_value
        spreadsheets.get.return_value.execute.return_value = {
            'properties': {'title': title},
            'sheets': [{'properties': {'title': name}} for name in tabs],
        }
        self.values_api = spreadsheets.values.return_value
        self.values_api.get.side_effect = self._get
        self.values_api.update.return_value.execute.return_value = {}

    def _get(self, spreadsheetId, range, **kwargs):
        self.reads.append(range)
        request = MagicMock()
        values = read_range(self.tabs, range, kwargs.get('majorDimension', 'ROWS'))
        request.execute.return_value = {'values': values} if values else {}
        return request

    def spreadsheets(self):
        return self.mock.spreadsheets()


@pytest.fixture
def rule_rows():
    return [
        RULE_COLUMNS,
        ['Food', 'dining', 'CAFE', '', '', '>0'],
        ['Coffee', 'coffee,dining', 'LATTE', '', '', ''],
        ['', 'large', '', '', '', '>500'],
        ['Refund', 'refund', '', 'Checking', '', '<0'],
    ]


@pytest.fixture
def transaction_rows():
    header = list(TRANSACTION_COLUMNS)
    return [
        header,
        ['1/5/2024', 'CAFE LATTE', '', '', '$4.50', 'Visa', 'xxxx1234', 'Chase',
         '1/1/2024', '12/31/2023', 'CAFE LATTE #12', '', 'tx-1'],
        ['1/6/2024', 'HARDWARE STORE', 'Home', 'diy', '$612.00', 'Visa', 'xxxx1234', 'Chase',
         '1/1/2024', '1/7/2024', 'HARDWARE STORE 9', '', 'tx-2'],
        ['1/7/2024', 'RETURN', '', '', '-$20.00', 'Checking', 'xxxx9999', 'Ally',
         '1/1/2024', '1/7/2024', 'RETURN ITEM', '1001', 'tx-3'],
    ]


@pytest.fixture
def sheet_tabs(rule_rows, transaction_rows):
    return {
        'AutoTag': rule_rows,
        'Transactions': transaction_rows,
    }


@pytest.fixture
def fake_service(sheet_tabs):
    return FakeSheetsService(sheet_tabs)


@pytest.fixture(autouse=True)
def no_retry_sleep(monkeypatch):
    monkeypatch.setattr('autotag.utils.time.sleep', lambda seconds: None)
