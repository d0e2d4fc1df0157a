"""User-configurable values loaded from environment variables."""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DATA_DIR: Path = Path(os.environ.get("REMIND_BOT_HOME") or Path.home() / ".remind-bot")
DB_FILE: Path = Path(os.environ.get("REMIND_DB_FILE") or DATA_DIR / "reminders.json")
LOG_LEVEL: str = os.environ.get("REMIND_LOG_LEVEL", "INFO").upper()


def _parse_guild(raw: str | None) -> int | None:
    if not raw:
        return None
    if not raw.strip().isdigit():
        print(f"REMIND_DEV_GUILD must be a numeric guild id, got {raw!r}", file=sys.stderr)
        raise SystemExit(1)
    return int(raw)


# Slash commands sync to this guild only (instant) instead of globally.
DEV_GUILD: int | None = _parse_guild(os.environ.get("REMIND_DEV_GUILD"))
