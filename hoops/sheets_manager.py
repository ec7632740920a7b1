import json
import logging
import os
import time
from datetime import datetime, timezone

import numpy as np
import pandas as pd
import streamlit as st
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from . import config
from . import roster

logger = logging.getLogger(__name__)


def _load_credentials():
    """Service-account credentials from Streamlit secrets, falling back to GOOGLE_CREDENTIALS_JSON."""
    try:
        if 'google_credentials_type' in st.secrets:
            # Reconstruct credentials dict from flattened secrets
            keys = ['type', 'project_id', 'private_key_id', 'private_key', 'client_email',
                    'client_id', 'auth_uri', 'token_uri', 'auth_provider_x509_cert_url',
                    'client_x509_cert_url', 'universe_domain']
            creds_info = {key: st.secrets[f'google_credentials_{key}'] for key in keys}
            return service_account.Credentials.from_service_account_info(creds_info, scopes=config.SCOPES)
    except FileNotFoundError:
        # No secrets.toml, e.g. when running the API under uvicorn
        pass

    creds_json = os.getenv('GOOGLE_CREDENTIALS_JSON')
    if creds_json:
        return service_account.Credentials.from_service_account_info(
            json.loads(creds_json), scopes=config.SCOPES
        )
    raise RuntimeError("No credentials found in Streamlit secrets or environment variables")


def _cell(value):
    """Convert a DataFrame value into something the Sheets API accepts."""
    if value is None:
        return ""
    if isinstance(value, float) and np.isnan(value):
        return ""
    if isinstance(value, np.bool_):
        return bool(value)
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    return value


def _now_iso():
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class SheetsManager:
    def __init__(self, service=None, spreadsheet_id=None):
        self.api_calls = 0
        self.spreadsheet_id = spreadsheet_id or config.SPREADSHEET_ID
        if service is None:
            creds = _load_credentials()
            service = build('sheets', 'v4', credentials=creds)
        self.service = service
        self.sheet = self.service.spreadsheets()
        self._sheets_ready = False

    def _log_api_call(self, operation):
        """Log API call for tracking"""
        self.api_calls += 1
        logger.debug("Sheets API call %d: %s", self.api_calls, operation)

    # ------------------------------------------------------------------
    # Sheet plumbing
    # ------------------------------------------------------------------

    def ensure_sheets(self):
        """Create any missing sheets with a bold, frozen header row."""
        self._log_api_call("Listing sheets")
        spreadsheet = self.sheet.get(spreadsheetId=self.spreadsheet_id).execute()
        existing_sheets = [s['properties']['title'] for s in spreadsheet.get('sheets', [])]

        missing = [name for name in config.SHEET_HEADERS if name not in existing_sheets]
        if missing:
            self._log_api_call(f"Creating sheets {missing}")
            self.sheet.batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={"requests": [{"addSheet": {"properties": {"title": name}}} for name in missing]}
            ).execute()
            logger.info("Created sheets: %s", missing)

            for name in missing:
                self.sheet.values().update(
                    spreadsheetId=self.spreadsheet_id,
                    range=f"{name}!A1",
                    valueInputOption="RAW",
                    body={"values": [config.SHEET_HEADERS[name]]}
                ).execute()

            format_requests = []
            for name in missing:
                sheet_id = self._get_sheet_id(name)
                if sheet_id is None:
                    continue
                format_requests.append({
                    "repeatCell": {
                        "range": {"sheetId": sheet_id, "startRowIndex": 0, "endRowIndex": 1},
                        "cell": {
                            "userEnteredFormat": {
                                "backgroundColor": {"red": 0.9, "green": 0.9, "blue": 0.9},
                                "textFormat": {"bold": True}
                            }
                        },
                        "fields": "userEnteredFormat(backgroundColor,textFormat)"
                    }
                })
                # Freeze the header row
                format_requests.append({
                    "updateSheetProperties": {
                        "properties": {"sheetId": sheet_id, "gridProperties": {"frozenRowCount": 1}},
                        "fields": "gridProperties.frozenRowCount"
                    }
                })
            if format_requests:
                self.sheet.batchUpdate(
                    spreadsheetId=self.spreadsheet_id,
                    body={"requests": format_requests}
                ).execute()

        self._sheets_ready = True
        return missing

    def _get_sheet_id(self, sheet_name):
        spreadsheet = self.sheet.get(spreadsheetId=self.spreadsheet_id).execute()
        for s in spreadsheet.get('sheets', []):
            if s['properties']['title'] == sheet_name:
                return s['properties']['sheetId']
        return None

    def _ensure_ready(self):
        if not self._sheets_ready:
            self.ensure_sheets()

    def read_sheet(self, range_name):
        """Read a sheet and return a DataFrame with the expected columns, in order."""
        self._ensure_ready()
        expected_header = config.SHEET_HEADERS.get(range_name)

        for attempt in range(config.MAX_RETRIES):
            try:
                self._log_api_call(f"Reading sheet {range_name}")
                result = self.sheet.values().get(
                    spreadsheetId=self.spreadsheet_id,
                    range=range_name
                ).execute()
                break
            except HttpError as e:
                if e.resp.status == 429 and attempt < config.MAX_RETRIES - 1:  # Quota exceeded
                    logger.warning("Quota exceeded reading %s, retrying in %ss", range_name, config.READ_RETRY_DELAY)
                    time.sleep(config.READ_RETRY_DELAY)
                    continue
                logger.error("Error reading sheet %s after %d attempts: %s", range_name, attempt + 1, e)
                raise

        values = result.get('values', [])
        if not values:
            return pd.DataFrame(columns=expected_header or [])

        header = values[0]
        data = values[1:]
        if not expected_header:
            return pd.DataFrame([row + [''] * (len(header) - len(row)) for row in data], columns=header)

        # Map actual column positions to expected columns
        column_mapping = {}
        for i, col in enumerate(header):
            if col in expected_header:
                column_mapping[i] = expected_header.index(col)

        # Reorder and pad columns as needed
        reordered_data = []
        for row in data:
            new_row = [''] * len(expected_header)
            for i, val in enumerate(row):
                if i in column_mapping:
                    new_row[column_mapping[i]] = val
            reordered_data.append(new_row)

        return pd.DataFrame(reordered_data, columns=expected_header)

    def update_sheet(self, range_name, df):
        """Overwrite a sheet with the header and rows of df, clearing any leftover rows."""
        self._ensure_ready()
        header = config.SHEET_HEADERS.get(range_name, df.columns.tolist())
        values_to_write = [[_cell(v) for v in row] for row in df[header].values.tolist()]
        num_rows = len(values_to_write)
        end_col = chr(ord('A') + len(header) - 1)

        data = [{'range': f"{range_name}!A1", 'values': [header]}]
        if values_to_write:
            data.append({'range': f"{range_name}!A2:{end_col}{num_rows + 1}", 'values': values_to_write})

        for attempt in range(config.MAX_RETRIES):
            try:
                self._log_api_call(f"Updating sheet {range_name}")
                self.sheet.values().batchUpdate(
                    spreadsheetId=self.spreadsheet_id,
                    body={'valueInputOption': 'RAW', 'data': data}
                ).execute()

                # If there are extra rows beyond our data, clear them
                result = self.sheet.values().get(
                    spreadsheetId=self.spreadsheet_id,
                    range=range_name
                ).execute()
                total_rows = len(result.get('values', []))
                if total_rows > num_rows + 1:  # +1 for header
                    self.sheet.values().clear(
                        spreadsheetId=self.spreadsheet_id,
                        range=f"{range_name}!A{num_rows + 2}:{end_col}{total_rows}",
                        body={}
                    ).execute()
                return True
            except Exception as e:
                if attempt < config.MAX_RETRIES - 1:
                    logger.warning("Retry %d/%d updating %s after error: %s",
                                   attempt + 1, config.MAX_RETRIES, range_name, e)
                    time.sleep(config.WRITE_RETRY_DELAYS[attempt])
                    continue
                logger.error("Error updating sheet %s after %d attempts: %s", range_name, config.MAX_RETRIES, e)
                raise

    def append_row(self, range_name, row):
        self._ensure_ready()
        self._log_api_call(f"Appending to sheet {range_name}")
        self.sheet.values().append(
            spreadsheetId=self.spreadsheet_id,
            range=range_name,
            valueInputOption='RAW',
            insertDataOption='INSERT_ROWS',
            body={'values': [[_cell(v) for v in row]]}
        ).execute()

    def log_action(self, action, actor, details=""):
        """Append an audit log row. A failed log write never fails the action itself."""
        try:
            self.append_row(config.SHEET_LOGS, [_now_iso(), action, actor or "Unknown", details])
        except Exception as e:
            logger.warning("Could not write audit log for %s: %s", action, e)

    # ------------------------------------------------------------------
    # Roster
    # ------------------------------------------------------------------

    def get_players(self):
        return roster.normalize_players(self.read_sheet(config.SHEET_ROSTER))

    def save_players(self, players_df):
        df = roster.normalize_players(players_df)
        df[config.COL_TIMESTAMP] = df[config.COL_TIMESTAMP].map(roster.millis_to_iso)
        return self.update_sheet(config.SHEET_ROSTER, df)

    def _recalculate(self, players_df):
        return roster.recalculate_roster_status(players_df, self.get_settings()[config.SETTING_MAX_PLAYERS])

    def update_status(self, player_id, status, actor=None, now_ms=None):
        """Change a player's status, then re-rank the whole roster against capacity."""
        now_ms = now_ms if now_ms is not None else roster.now_millis()
        players_df = self.get_players()
        players_df = roster.apply_status_change(players_df, player_id, status, now_ms)
        players_df = self._recalculate(players_df)
        self.save_players(players_df)

        idx = roster.find_player_index(players_df, player_id)
        final_status = players_df.at[idx, config.COL_STATUS]
        self.log_action(config.ACTION_UPDATE_STATUS, actor,
                        f"{players_df.at[idx, config.COL_NAME]} -> {status} ({final_status})")
        return players_df

    def create_player(self, record, actor=None):
        tier = record.get("tier") or config.DEFAULT_TIER
        if int(tier) not in config.TIERS:
            raise ValueError(f"Invalid tier: {tier}")
        errors = roster.validate_player_details(
            record.get("name", ""), record.get("phoneNumber", ""), record.get("pin", ""), record.get("email", "")
        )
        if errors:
            raise ValueError("; ".join(errors.values()))

        players_df = self.get_players()
        player = roster.new_player_record(
            record["name"], record["phoneNumber"], record["pin"],
            email=record.get("email", ""),
            tier=tier,
            is_admin=roster.to_bool(record.get("isAdmin", False)),
            player_id=record.get("id"),
        )
        if player["id"] in players_df[config.COL_ID].values:
            raise ValueError(f"Player already exists: {player['id']}")

        new_row = roster.players_from_records([player])
        players_df = pd.concat([players_df, new_row], ignore_index=True)
        self.save_players(players_df)
        self.log_action(config.ACTION_CREATE_PLAYER, actor, f"Created {player['name']} ({player['id']})")
        return player

    def update_player_details(self, player_id, record, actor=None):
        """Update the editable profile fields. Status and signup time are left alone."""
        players_df = self.get_players()
        idx = roster.find_player_index(players_df, player_id)
        current = roster.players_to_records(players_df.loc[[idx]])[0]

        editable = ["name", "tier", "phoneNumber", "email", "pin", "isAdmin"]
        updated = dict(current)
        updated.update({k: record[k] for k in editable if k in record})
        if int(updated["tier"]) not in config.TIERS:
            raise ValueError(f"Invalid tier: {updated['tier']}")

        errors = roster.validate_player_details(
            updated["name"], updated["phoneNumber"], updated["pin"], updated["email"]
        )
        if errors:
            raise ValueError("; ".join(errors.values()))

        players_df.at[idx, config.COL_NAME] = updated["name"].strip()
        players_df.at[idx, config.COL_TIER] = int(updated["tier"])
        players_df.at[idx, config.COL_PHONE] = updated["phoneNumber"]
        players_df.at[idx, config.COL_EMAIL] = updated["email"] or ""
        players_df.at[idx, config.COL_PIN] = str(updated["pin"])
        players_df.at[idx, config.COL_IS_ADMIN] = roster.to_bool(updated["isAdmin"])

        # A tier change can move players across the cutoff
        players_df = self._recalculate(players_df)
        self.save_players(players_df)
        self.log_action(config.ACTION_UPDATE_PLAYER_DETAILS, actor, f"Updated {updated['name']} ({player_id})")
        return players_df

    def delete_player(self, player_id, actor=None):
        players_df = self.get_players()
        idx = roster.find_player_index(players_df, player_id)
        name = players_df.at[idx, config.COL_NAME]
        players_df = players_df.drop(index=idx).reset_index(drop=True)
        players_df = self._recalculate(players_df)
        self.save_players(players_df)
        self.log_action(config.ACTION_DELETE_PLAYER, actor, f"Deleted {name} ({player_id})")
        return players_df

    def reset_week(self, actor=None, should_archive=False):
        """Clear every status and signup time, optionally archiving the confirmed players first."""
        players_df = self.get_players()
        if should_archive:
            confirmed = roster.confirmed_players(players_df)
            if not confirmed.empty:
                self.append_row(config.SHEET_HISTORY, [
                    _now_iso(),
                    json.dumps(confirmed[config.COL_ID].tolist()),
                    ", ".join(confirmed[config.COL_NAME].tolist()),
                ])
                logger.info("Archived %d players to game history", len(confirmed))

        players_df = roster.reset_week(players_df)
        self.save_players(players_df)
        self.log_action(config.ACTION_RESET_WEEK, actor, f"archive={bool(should_archive)}")
        return players_df

    def initialize_or_sync(self, records, actor=None):
        """Overwrite the roster sheet with the given players."""
        self.ensure_sheets()
        players_df = roster.players_from_records(records)
        self.save_players(players_df)
        self.log_action(config.ACTION_INITIALIZE_OR_SYNC, actor, f"{len(players_df)} players")
        return players_df

    # ------------------------------------------------------------------
    # Scoreboard
    # ------------------------------------------------------------------

    def get_score(self):
        score_df = self.read_sheet(config.SHEET_SCORE)
        if score_df.empty:
            return {"scoreA": 0, "scoreB": 0}
        row = score_df.iloc[0]
        score_a = pd.to_numeric(row[config.COL_SCORE_A], errors='coerce')
        score_b = pd.to_numeric(row[config.COL_SCORE_B], errors='coerce')
        return {
            "scoreA": 0 if pd.isna(score_a) else int(score_a),
            "scoreB": 0 if pd.isna(score_b) else int(score_b),
        }

    def update_score(self, score_a, score_b, actor=None):
        score_a, score_b = int(score_a), int(score_b)
        score_df = pd.DataFrame([{
            config.COL_SCORE_A: score_a,
            config.COL_SCORE_B: score_b,
            config.COL_UPDATED_BY: actor or "Unknown",
            config.COL_UPDATED_AT: _now_iso(),
        }])
        self.update_sheet(config.SHEET_SCORE, score_df)
        self.log_action(config.ACTION_UPDATE_SCORE, actor, f"{score_a}-{score_b}")
        return {"scoreA": score_a, "scoreB": score_b}

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_settings(self):
        settings = dict(config.DEFAULT_SETTINGS)
        settings_df = self.read_sheet(config.SHEET_SETTINGS)
        for _, row in settings_df.iterrows():
            key = row[config.COL_KEY]
            if key in settings and row[config.COL_VALUE] != "":
                settings[key] = row[config.COL_VALUE]
        settings[config.SETTING_MAX_PLAYERS] = int(settings[config.SETTING_MAX_PLAYERS])
        settings[config.SETTING_OPEN_TIERS] = str(settings[config.SETTING_OPEN_TIERS])
        return settings

    def update_settings(self, updates, actor=None):
        unknown = [key for key in updates if key not in config.DEFAULT_SETTINGS]
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(unknown)}")

        updates = dict(updates)
        if config.SETTING_MAX_PLAYERS in updates:
            max_players = int(updates[config.SETTING_MAX_PLAYERS])
            if max_players <= 0:
                raise ValueError(f"maxPlayers must be positive: {max_players}")
            updates[config.SETTING_MAX_PLAYERS] = max_players
        if config.SETTING_GAME_DAY in updates and updates[config.SETTING_GAME_DAY] not in config.WEEKDAYS:
            raise ValueError(f"Invalid game day: {updates[config.SETTING_GAME_DAY]}")
        if config.SETTING_OPEN_TIERS in updates:
            tiers = roster.parse_tiers(updates[config.SETTING_OPEN_TIERS])
            if not tiers <= set(config.TIERS):
                raise ValueError(f"Invalid tiers: {updates[config.SETTING_OPEN_TIERS]}")
            updates[config.SETTING_OPEN_TIERS] = ",".join(str(t) for t in sorted(tiers))

        current = self.get_settings()
        settings = dict(current)
        settings.update(updates)
        settings_df = pd.DataFrame(
            [{config.COL_KEY: key, config.COL_VALUE: value} for key, value in settings.items()]
        )
        self.update_sheet(config.SHEET_SETTINGS, settings_df)

        if settings[config.SETTING_MAX_PLAYERS] != current[config.SETTING_MAX_PLAYERS]:
            players_df = roster.recalculate_roster_status(self.get_players(), settings[config.SETTING_MAX_PLAYERS])
            self.save_players(players_df)

        self.log_action(config.ACTION_UPDATE_SETTINGS, actor, json.dumps(updates))
        return settings

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def get_stats(self):
        """Games played per player, counted from the archived game history."""
        players_df = self.get_players()
        history_df = self.read_sheet(config.SHEET_HISTORY)

        games = {}
        for _, row in history_df.iterrows():
            try:
                player_ids = json.loads(row[config.COL_IDS])
            except (TypeError, ValueError):
                logger.warning("Skipping unreadable history row from %s", row[config.COL_DATE])
                continue
            if isinstance(player_ids, list):
                for player_id in player_ids:
                    games[str(player_id)] = games.get(str(player_id), 0) + 1

        stats = [
            {
                "id": player[config.COL_ID],
                "name": player[config.COL_NAME],
                "tier": int(player[config.COL_TIER]),
                "gamesPlayed": games.get(player[config.COL_ID], 0),
            }
            for _, player in players_df.iterrows()
        ]
        return sorted(stats, key=lambda s: s["gamesPlayed"], reverse=True)
