import os

# Roster Settings
MAX_PLAYERS = 12
GAME_DAY = "Monday"
OPEN_SIGNUP_TIERS = "1"  # Tiers that may sign up before game day
DEFAULT_TIER = 3  # Tier given to self sign-ups

# Google Sheets Configuration
SPREADSHEET_ID = os.getenv("HOOPS_SPREADSHEET_ID", "")
SCOPES = ['https://www.googleapis.com/auth/spreadsheets']

# Backend API
BACKEND_URL = os.getenv("HOOPS_BACKEND_URL", "")
API_HOST = os.getenv("HOOPS_API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("HOOPS_API_PORT", 8000))
LOCK_TIMEOUT_SECONDS = 10
REQUEST_TIMEOUT_SECONDS = 15

# Retries
MAX_RETRIES = 3
READ_RETRY_DELAY = 10  # seconds, on quota errors
WRITE_RETRY_DELAYS = [1, 3, 6]

# Client
SCORE_SYNC_DELAY = 1.0  # seconds of quiet before a score is sent
AUTO_REFRESH_SECONDS = 60
SCOREBOARD_REFRESH_SECONDS = 10

# Local client state
STORE_PATH = os.getenv("HOOPS_STORE_PATH", os.path.join(os.path.expanduser("~"), ".cache", "hoops", "local_store.json"))
STORAGE_KEY_PLAYERS = "hoops_players_data_v5"
STORAGE_KEY_USER = "hoops_current_user_v5"
STORAGE_KEY_CONFIG = "hoops_app_config_stable"

# Sheet Names
SHEET_ROSTER = "Roster"
SHEET_LOGS = "Audit_Logs"
SHEET_HISTORY = "Game_History"
SHEET_SCORE = "Scoreboard"
SHEET_SETTINGS = "Settings"

# Column Names
# Roster Sheet
COL_ID = "ID"
COL_NAME = "Name"
COL_TIER = "Tier"
COL_STATUS = "Status"
COL_PHONE = "Phone"
COL_TIMESTAMP = "Timestamp"
COL_IS_ADMIN = "IsAdmin"
COL_EMAIL = "Email"
COL_PIN = "PIN"

# Audit Logs Sheet
COL_LOG_TIMESTAMP = "Timestamp"
COL_ACTION = "Action"
COL_ACTOR = "Actor"
COL_DETAILS = "Details"

# Game History Sheet
COL_DATE = "Date"
COL_IDS = "IDs"
COL_NAMES = "Names"

# Scoreboard Sheet
COL_SCORE_A = "ScoreA"
COL_SCORE_B = "ScoreB"
COL_UPDATED_BY = "UpdatedBy"
COL_UPDATED_AT = "UpdatedAt"

# Settings Sheet
COL_KEY = "Key"
COL_VALUE = "Value"

SHEET_HEADERS = {
    SHEET_ROSTER: [COL_ID, COL_NAME, COL_TIER, COL_STATUS, COL_PHONE,
                   COL_TIMESTAMP, COL_IS_ADMIN, COL_EMAIL, COL_PIN],
    SHEET_LOGS: [COL_LOG_TIMESTAMP, COL_ACTION, COL_ACTOR, COL_DETAILS],
    SHEET_HISTORY: [COL_DATE, COL_IDS, COL_NAMES],
    SHEET_SCORE: [COL_SCORE_A, COL_SCORE_B, COL_UPDATED_BY, COL_UPDATED_AT],
    SHEET_SETTINGS: [COL_KEY, COL_VALUE],
}

# Player JSON fields, mapped to Roster columns
PLAYER_FIELDS = {
    "id": COL_ID,
    "name": COL_NAME,
    "tier": COL_TIER,
    "status": COL_STATUS,
    "phoneNumber": COL_PHONE,
    "timestamp": COL_TIMESTAMP,
    "isAdmin": COL_IS_ADMIN,
    "email": COL_EMAIL,
    "pin": COL_PIN,
}

# Player Status Values
STATUS_UNKNOWN = "UNKNOWN"
STATUS_IN = "IN"
STATUS_OUT = "OUT"
STATUS_WAITLIST = "WAITLIST"
PLAYER_STATUSES = [STATUS_UNKNOWN, STATUS_IN, STATUS_OUT, STATUS_WAITLIST]
HOPEFUL_STATUSES = [STATUS_IN, STATUS_WAITLIST]

# Tiers
TIER_ONE = 1
TIER_TWO = 2
TIER_THREE = 3
TIERS = [TIER_ONE, TIER_TWO, TIER_THREE]

# Admin roster filters
FILTER_ALL = "ALL"
FILTER_IN = "IN"
FILTER_WAITLIST = "WAITLIST"
FILTER_PENDING = "PENDING"

# Settings keys and defaults
SETTING_MAX_PLAYERS = "maxPlayers"
SETTING_GAME_DAY = "gameDay"
SETTING_OPEN_TIERS = "openSignupTiers"
DEFAULT_SETTINGS = {
    SETTING_MAX_PLAYERS: MAX_PLAYERS,
    SETTING_GAME_DAY: GAME_DAY,
    SETTING_OPEN_TIERS: OPEN_SIGNUP_TIERS,
}

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

# API Actions
ACTION_GET_STATS = "GET_STATS"
ACTION_GET_SCORE = "GET_SCORE"
ACTION_GET_SETTINGS = "GET_SETTINGS"
ACTION_UPDATE_STATUS = "UPDATE_STATUS"
ACTION_CREATE_PLAYER = "CREATE_PLAYER"
ACTION_UPDATE_PLAYER_DETAILS = "UPDATE_PLAYER_DETAILS"
ACTION_DELETE_PLAYER = "DELETE_PLAYER"
ACTION_RESET_WEEK = "RESET_WEEK"
ACTION_UPDATE_SCORE = "UPDATE_SCORE"
ACTION_UPDATE_SETTINGS = "UPDATE_SETTINGS"
ACTION_INITIALIZE_OR_SYNC = "INITIALIZE_OR_SYNC"

# Share texts
APP_TITLE = "Monday Night Hoops"
PLAYER_APP_URL = os.getenv("HOOPS_PLAYER_APP_URL", "https://monday-hoops.streamlit.app/")
