"""Shared fixtures: an in-memory spreadsheet and a sleep that never waits."""

import os

os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("SHEET_FETCH_DELAY_MS", "0")

import pytest

from scripts.lib.errors import MissingHeaderError, SheetNotFoundError


class FakeSheetSource:
    """SheetSource over a dict of title -> rows.

    ``errors`` maps a title to a list of exceptions raised, in order, by the
    next reads of that title before the rows are returned.
    """

    def __init__(self, sheets=None, errors=None, spreadsheet_id="fake-sheet"):
        self.sheets = dict(sheets or {})
        self.errors = {k: list(v) for k, v in (errors or {}).items()}
        self.spreadsheet_id = spreadsheet_id
        self.reads = []

    async def fetch_sheet_titles(self):
        return list(self.sheets)

    async def fetch_rows(self, title):
        self.reads.append(title)
        pending = self.errors.get(title)
        if pending:
            raise pending.pop(0)
        if title not in self.sheets:
            raise SheetNotFoundError(title)
        rows = self.sheets[title]
        if rows is None:
            raise MissingHeaderError(title)
        return [dict(r) for r in rows]


class SleepRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def sleep():
    return SleepRecorder()


@pytest.fixture
def make_source():
    return FakeSheetSource

