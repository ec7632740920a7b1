import logging

from hoops import config
from hoops.sheets_manager import SheetsManager

logger = logging.getLogger(__name__)


def initialize_sheets():
    """Create the Roster, Audit_Logs, Game_History, Scoreboard and Settings sheets if missing."""
    sheets_mgr = SheetsManager()
    created = sheets_mgr.ensure_sheets()
    if created:
        logger.info("Created sheets: %s", created)

    # Seed default settings on a fresh spreadsheet
    if sheets_mgr.read_sheet(config.SHEET_SETTINGS).empty:
        sheets_mgr.update_settings(config.DEFAULT_SETTINGS, actor="initialize_sheets")
    logger.info("Successfully initialized all sheets!")


def main():
    logging.basicConfig(level=logging.INFO)
    initialize_sheets()


if __name__ == "__main__":
    main()
