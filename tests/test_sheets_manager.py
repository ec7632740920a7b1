import json
from unittest.mock import MagicMock

import httplib2
import pytest
from googleapiclient.errors import HttpError

from hoops import config
from hoops import roster
from hoops.sheets_manager import SheetsManager
from conftest import FakeSheetsService, roster_rows


def by_id(sheets_mgr):
    return {p["id"]: p for p in roster.players_to_records(sheets_mgr.get_players())}


def test_ensure_sheets_creates_missing_with_headers(sheets_mgr, fake_service):
    created = sheets_mgr.ensure_sheets()
    assert created == list(config.SHEET_HEADERS)
    for name, header in config.SHEET_HEADERS.items():
        assert fake_service.rows(name) == [header]
    # bold header plus frozen row for every new sheet
    assert len(fake_service.format_requests) == 2 * len(config.SHEET_HEADERS)
    assert sheets_mgr.ensure_sheets() == []


def test_read_sheet_reorders_and_pads_columns():
    service = FakeSheetsService({
        config.SHEET_ROSTER: [
            [config.COL_NAME, config.COL_ID, "Nickname"],
            ["Jokic N.", "15", "Joker"],
            ["Murray J."],
        ],
    })
    mgr = SheetsManager(service=service, spreadsheet_id="test-spreadsheet")
    df = mgr.read_sheet(config.SHEET_ROSTER)
    assert df.columns.tolist() == config.SHEET_HEADERS[config.SHEET_ROSTER]
    assert df[config.COL_ID].tolist() == ["15", ""]
    assert df[config.COL_NAME].tolist() == ["Jokic N.", "Murray J."]


def test_read_sheet_retries_on_quota(sheets_mgr, fake_service, monkeypatch):
    sleeps = []
    monkeypatch.setattr("hoops.sheets_manager.time.sleep", sleeps.append)
    sheets_mgr.ensure_sheets()
    fake_service.read_errors = [HttpError(httplib2.Response({"status": 429}), b"quota")]

    df = sheets_mgr.read_sheet(config.SHEET_ROSTER)

    assert df.empty
    assert sleeps == [config.READ_RETRY_DELAY]


def test_read_sheet_raises_other_errors(sheets_mgr, fake_service):
    sheets_mgr.ensure_sheets()
    fake_service.read_errors = [HttpError(httplib2.Response({"status": 500}), b"boom")]
    with pytest.raises(HttpError):
        sheets_mgr.read_sheet(config.SHEET_ROSTER)


def test_update_sheet_clears_leftover_rows(seeded_mgr):
    players_df = seeded_mgr.get_players().iloc[:2]
    seeded_mgr.save_players(players_df)
    rows = seeded_mgr.service.rows(config.SHEET_ROSTER)
    assert len(rows) == 3
    assert [r[0] for r in rows[1:]] == ["1", "2"]


def test_update_sheet_gives_up_after_retries(sheets_mgr, monkeypatch):
    sleeps = []
    monkeypatch.setattr("hoops.sheets_manager.time.sleep", sleeps.append)
    sheets_mgr.ensure_sheets()

    broken_sheet = MagicMock()
    broken_sheet.values.return_value.batchUpdate.side_effect = ConnectionError("network down")
    monkeypatch.setattr(sheets_mgr, "sheet", broken_sheet)

    with pytest.raises(ConnectionError):
        sheets_mgr.save_players(roster.empty_players())
    assert sleeps == config.WRITE_RETRY_DELAYS[:config.MAX_RETRIES - 1]


class TestUpdateStatus:
    def test_capacity_and_priority_after_signups(self, seeded_mgr):
        seeded_mgr.update_status("21", config.STATUS_IN, "Zion W.", now_ms=100)
        seeded_mgr.update_status("11", config.STATUS_IN, "Paul G.", now_ms=200)
        seeded_mgr.update_status("2", config.STATUS_IN, "Steph C.", now_ms=300)
        seeded_mgr.update_status("1", config.STATUS_IN, "LeBron J.", now_ms=400)

        players = by_id(seeded_mgr)
        # capacity is 3: the tier 3 player is bumped despite signing up first
        assert players["1"]["status"] == config.STATUS_IN
        assert players["2"]["status"] == config.STATUS_IN
        assert players["11"]["status"] == config.STATUS_IN
        assert players["21"]["status"] == config.STATUS_WAITLIST
        assert players["21"]["timestamp"] == 100

    def test_dropping_out_promotes_waitlist(self, seeded_mgr):
        for i, player_id in enumerate(["1", "2", "3", "11"]):
            seeded_mgr.update_status(player_id, config.STATUS_IN, now_ms=100 + i)
        assert by_id(seeded_mgr)["11"]["status"] == config.STATUS_WAITLIST

        seeded_mgr.update_status("2", config.STATUS_OUT, now_ms=999)

        players = by_id(seeded_mgr)
        assert players["11"]["status"] == config.STATUS_IN
        assert players["2"]["status"] == config.STATUS_OUT

    def test_repeat_in_keeps_timestamp(self, seeded_mgr):
        seeded_mgr.update_status("1", config.STATUS_IN, now_ms=100)
        seeded_mgr.update_status("1", config.STATUS_IN, now_ms=500)
        assert by_id(seeded_mgr)["1"]["timestamp"] == 100

    def test_timestamp_stored_as_iso(self, seeded_mgr):
        seeded_mgr.update_status("1", config.STATUS_IN, now_ms=1700000000000)
        row = seeded_mgr.service.table(config.SHEET_ROSTER)[0]
        assert row[config.COL_TIMESTAMP] == "2023-11-14T22:13:20Z"

    def test_audit_logged(self, seeded_mgr):
        seeded_mgr.update_status("1", config.STATUS_IN, "LeBron J.", now_ms=100)
        log = seeded_mgr.service.table(config.SHEET_LOGS)[-1]
        assert log[config.COL_ACTION] == config.ACTION_UPDATE_STATUS
        assert log[config.COL_ACTOR] == "LeBron J."

    def test_unknown_player(self, seeded_mgr):
        with pytest.raises(roster.PlayerNotFoundError):
            seeded_mgr.update_status("404", config.STATUS_IN)


class TestPlayerCrud:
    def test_create_player(self, seeded_mgr):
        player = seeded_mgr.create_player(
            {"name": "Luka D.", "phoneNumber": "555-555-0177", "pin": "7777"}, "Luka D."
        )
        stored = by_id(seeded_mgr)[player["id"]]
        assert stored["name"] == "Luka D."
        assert stored["tier"] == config.DEFAULT_TIER
        assert stored["status"] == config.STATUS_UNKNOWN
        assert stored["pin"] == "7777"

    def test_create_player_rejects_invalid_details(self, seeded_mgr):
        with pytest.raises(ValueError, match="PIN"):
            seeded_mgr.create_player({"name": "Luka D.", "phoneNumber": "555-555-0177", "pin": "7"})

    def test_create_player_rejects_duplicate_id(self, seeded_mgr):
        with pytest.raises(ValueError, match="already exists"):
            seeded_mgr.create_player({"id": "1", "name": "Copy", "phoneNumber": "555-555-0177", "pin": "1111"})

    @pytest.mark.parametrize("tier", [-1, 4, 7])
    def test_create_player_rejects_unknown_tier(self, seeded_mgr, tier):
        with pytest.raises(ValueError, match=f"Invalid tier: {tier}"):
            seeded_mgr.create_player({"name": "Ja M.", "phoneNumber": "555-555-0112", "pin": "1212", "tier": tier})
        assert len(by_id(seeded_mgr)) == 5

    def test_update_details_keeps_status_and_recalculates(self, seeded_mgr):
        for i, player_id in enumerate(["1", "2", "3", "11"]):
            seeded_mgr.update_status(player_id, config.STATUS_IN, now_ms=100 + i)

        seeded_mgr.update_player_details("3", {"tier": 3, "name": "Kevin Durant"}, "Admin")

        players = by_id(seeded_mgr)
        assert players["3"]["name"] == "Kevin Durant"
        assert players["3"]["status"] == config.STATUS_WAITLIST
        assert players["3"]["timestamp"] == 102
        assert players["11"]["status"] == config.STATUS_IN

    def test_update_details_rejects_bad_tier(self, seeded_mgr):
        with pytest.raises(ValueError, match="Invalid tier"):
            seeded_mgr.update_player_details("1", {"tier": 7})

    def test_delete_player_frees_spot(self, seeded_mgr):
        for i, player_id in enumerate(["1", "2", "3", "11"]):
            seeded_mgr.update_status(player_id, config.STATUS_IN, now_ms=100 + i)

        seeded_mgr.delete_player("1", "Admin")

        players = by_id(seeded_mgr)
        assert "1" not in players
        assert players["11"]["status"] == config.STATUS_IN
        assert len(players) == 4


def test_reset_week_archives_confirmed(seeded_mgr):
    seeded_mgr.update_status("1", config.STATUS_IN, now_ms=100)
    seeded_mgr.update_status("2", config.STATUS_IN, now_ms=200)

    seeded_mgr.reset_week("Admin", should_archive=True)

    history = seeded_mgr.service.table(config.SHEET_HISTORY)
    assert len(history) == 1
    assert json.loads(history[0][config.COL_IDS]) == ["1", "2"]
    assert history[0][config.COL_NAMES] == "LeBron J., Steph C."
    for player in by_id(seeded_mgr).values():
        assert player["status"] == config.STATUS_UNKNOWN
        assert player["timestamp"] is None


def test_reset_week_without_archive(seeded_mgr):
    seeded_mgr.update_status("1", config.STATUS_IN, now_ms=100)
    seeded_mgr.reset_week("Admin")
    assert seeded_mgr.service.table(config.SHEET_HISTORY) == []


def test_initialize_or_sync_overwrites_roster(seeded_mgr, make_player):
    seeded_mgr.initialize_or_sync([make_player("x", tier=2, status=config.STATUS_IN, timestamp=42)], "Admin")
    players = by_id(seeded_mgr)
    assert list(players) == ["x"]
    assert players["x"]["timestamp"] == 42


def test_score_round_trip(sheets_mgr):
    assert sheets_mgr.get_score() == {"scoreA": 0, "scoreB": 0}
    sheets_mgr.update_score(21, "17", "Scorekeeper")
    assert sheets_mgr.get_score() == {"scoreA": 21, "scoreB": 17}
    row = sheets_mgr.service.table(config.SHEET_SCORE)[0]
    assert row[config.COL_UPDATED_BY] == "Scorekeeper"


class TestSettings:
    def test_defaults_when_sheet_empty(self, sheets_mgr):
        assert sheets_mgr.get_settings() == config.DEFAULT_SETTINGS

    def test_stored_values_win(self, seeded_mgr):
        assert seeded_mgr.get_settings()[config.SETTING_MAX_PLAYERS] == 3

    def test_lowering_capacity_recalculates(self, seeded_mgr):
        for i, player_id in enumerate(["1", "2", "3"]):
            seeded_mgr.update_status(player_id, config.STATUS_IN, now_ms=100 + i)

        settings = seeded_mgr.update_settings({config.SETTING_MAX_PLAYERS: 2}, "Admin")

        assert settings[config.SETTING_MAX_PLAYERS] == 2
        assert by_id(seeded_mgr)["3"]["status"] == config.STATUS_WAITLIST

    def test_open_tiers_normalized(self, sheets_mgr):
        settings = sheets_mgr.update_settings({config.SETTING_OPEN_TIERS: "2, 1"})
        assert settings[config.SETTING_OPEN_TIERS] == "1,2"

    @pytest.mark.parametrize("updates", [
        {"colour": "red"},
        {config.SETTING_MAX_PLAYERS: 0},
        {config.SETTING_GAME_DAY: "Funday"},
        {config.SETTING_OPEN_TIERS: "4"},
    ])
    def test_invalid_updates_rejected(self, sheets_mgr, updates):
        with pytest.raises(ValueError):
            sheets_mgr.update_settings(updates)


def test_stats_counts_games_played():
    service = FakeSheetsService({
        config.SHEET_ROSTER: roster_rows(("1", "LeBron J.", 1, "UNKNOWN", ""), ("2", "Steph C.", 1, "UNKNOWN", "")),
        config.SHEET_HISTORY: [
            config.SHEET_HEADERS[config.SHEET_HISTORY],
            ["2024-06-03T00:00:00Z", '["1", "2"]', "LeBron J., Steph C."],
            ["2024-06-10T00:00:00Z", '["2"]', "Steph C."],
            ["2024-06-17T00:00:00Z", "not json", ""],
        ],
    })
    mgr = SheetsManager(service=service, spreadsheet_id="test-spreadsheet")
    stats = mgr.get_stats()
    assert [(s["id"], s["gamesPlayed"]) for s in stats] == [("2", 2), ("1", 1)]


def test_failed_audit_log_does_not_fail_action(seeded_mgr, monkeypatch):
    def broken_append(*args, **kwargs):
        raise ConnectionError("logs unavailable")
    monkeypatch.setattr(seeded_mgr, "append_row", broken_append)
    seeded_mgr.update_status("1", config.STATUS_IN, now_ms=100)
    assert by_id(seeded_mgr)["1"]["status"] == config.STATUS_IN
