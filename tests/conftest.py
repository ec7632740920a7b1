import re

import pytest

from hoops import config
from hoops.sheets_manager import SheetsManager

RANGE_PATTERN = re.compile(r"^([^!]+)(?:!([A-Z]+)(\d+)(?::([A-Z]+)(\d+))?)?$")


def _as_sheet_value(value):
    """Mimic what the Sheets API hands back for a RAW-written cell."""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class FakeRequest:
    def __init__(self, fn):
        self._fn = fn

    def execute(self):
        return self._fn()


class FakeValues:
    def __init__(self, service):
        self.service = service

    def get(self, spreadsheetId, range):
        def run():
            if self.service.read_errors:
                raise self.service.read_errors.pop(0)
            title, _, _ = self.service.parse_range(range)
            rows = self.service.rows(title)
            return {"range": range, "values": rows} if rows else {"range": range}
        return FakeRequest(run)

    def batchUpdate(self, spreadsheetId, body):
        def run():
            for item in body["data"]:
                self.service.write(item["range"], item["values"])
            return {}
        return FakeRequest(run)

    def update(self, spreadsheetId, range, valueInputOption, body):
        return FakeRequest(lambda: self.service.write(range, body["values"]))

    def clear(self, spreadsheetId, range, body):
        return FakeRequest(lambda: self.service.clear(range))

    def append(self, spreadsheetId, range, valueInputOption, insertDataOption, body):
        def run():
            title, _, _ = self.service.parse_range(range)
            self.service.sheets[title] = self.service.rows(title) + [
                [_as_sheet_value(v) for v in row] for row in body["values"]
            ]
            return {}
        return FakeRequest(run)


class FakeSpreadsheets:
    def __init__(self, service):
        self.service = service

    def values(self):
        return FakeValues(self.service)

    def get(self, spreadsheetId):
        return FakeRequest(lambda: {
            "sheets": [
                {"properties": {"title": title, "sheetId": sheet_id}}
                for title, sheet_id in self.service.sheet_ids.items()
            ]
        })

    def batchUpdate(self, spreadsheetId, body):
        def run():
            for request in body["requests"]:
                if "addSheet" in request:
                    self.service.add_sheet(request["addSheet"]["properties"]["title"])
                else:
                    self.service.format_requests.append(request)
            return {}
        return FakeRequest(run)


class FakeSheetsService:
    """In-memory stand-in for the googleapiclient Sheets v4 service."""

    def __init__(self, sheets=None):
        self.sheets = {}
        self.sheet_ids = {}
        self.format_requests = []
        self.read_errors = []
        for title, rows in (sheets or {}).items():
            self.add_sheet(title, rows)

    def spreadsheets(self):
        return FakeSpreadsheets(self)

    def add_sheet(self, title, rows=None):
        self.sheet_ids[title] = len(self.sheet_ids) + 1
        self.sheets[title] = [[_as_sheet_value(v) for v in row] for row in (rows or [])]

    def parse_range(self, range_name):
        match = RANGE_PATTERN.match(range_name)
        title, start_row, end_row = match.group(1), match.group(3), match.group(5)
        return title, int(start_row) if start_row else 1, int(end_row) if end_row else None

    def rows(self, title):
        rows = [list(row) for row in self.sheets.get(title, [])]
        # The API leaves out trailing empty cells and rows
        rows = [row[:max([i + 1 for i, v in enumerate(row) if v != ""], default=0)] for row in rows]
        while rows and not rows[-1]:
            rows.pop()
        return rows

    def write(self, range_name, values):
        title, start_row, _ = self.parse_range(range_name)
        rows = self.sheets.setdefault(title, [])
        while len(rows) < start_row - 1 + len(values):
            rows.append([])
        for offset, row in enumerate(values):
            rows[start_row - 1 + offset] = [_as_sheet_value(v) for v in row]
        return {}

    def clear(self, range_name):
        title, start_row, end_row = self.parse_range(range_name)
        rows = self.sheets.get(title, [])
        end_row = end_row or len(rows)
        for i in range(start_row - 1, min(end_row, len(rows))):
            rows[i] = []
        return {}

    def table(self, title):
        """Rows of a sheet as dicts keyed by its header."""
        rows = self.rows(title)
        if not rows:
            return []
        header = rows[0]
        return [dict(zip(header, row + [""] * (len(header) - len(row)))) for row in rows[1:]]


def roster_rows(*players):
    """Sheet rows for a Roster tab: (id, name, tier, status, timestamp_iso) tuples."""
    rows = [config.SHEET_HEADERS[config.SHEET_ROSTER]]
    for player_id, name, tier, status, timestamp in players:
        rows.append([player_id, name, tier, status, "555-555-0100", timestamp, False, "", "1234"])
    return rows


@pytest.fixture
def fake_service():
    return FakeSheetsService()


@pytest.fixture
def sheets_mgr(fake_service):
    return SheetsManager(service=fake_service, spreadsheet_id="test-spreadsheet")


@pytest.fixture
def seeded_mgr():
    """A manager over a roster of three tier-1 regulars, one tier-2 and one tier-3 player."""
    service = FakeSheetsService({
        config.SHEET_ROSTER: roster_rows(
            ("1", "LeBron J.", 1, "UNKNOWN", ""),
            ("2", "Steph C.", 1, "UNKNOWN", ""),
            ("3", "Kevin D.", 1, "UNKNOWN", ""),
            ("11", "Paul G.", 2, "UNKNOWN", ""),
            ("21", "Zion W.", 3, "UNKNOWN", ""),
        ),
        config.SHEET_SETTINGS: [
            [config.COL_KEY, config.COL_VALUE],
            [config.SETTING_MAX_PLAYERS, 3],
        ],
    })
    return SheetsManager(service=service, spreadsheet_id="test-spreadsheet")


@pytest.fixture
def make_player():
    def factory(player_id, tier=1, status=config.STATUS_UNKNOWN, timestamp=None, name=None, **extra):
        player = {
            "id": str(player_id),
            "name": name or f"Player {player_id}",
            "tier": tier,
            "status": status,
            "phoneNumber": "555-555-0100",
            "timestamp": timestamp,
            "isAdmin": False,
            "email": "",
            "pin": "1234",
        }
        player.update(extra)
        return player
    return factory
