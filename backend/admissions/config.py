import os
from pathlib import Path
from dotenv import load_dotenv

# .env wins over the process environment. Tests set DISABLE_DOTENV=1 so a local
# .env cannot replace their DATABASE_URL.
if os.getenv("DISABLE_DOTENV") != "1":
    load_dotenv(override=True)

_raw_database_url = (os.getenv("DATABASE_URL") or "").strip()
# Local SQLite file next to the package when DATABASE_URL is unset.
_default_sqlite_path = (Path(__file__).resolve().parent.parent / "admissions.db").as_posix()
DATABASE_URL = _raw_database_url or f"sqlite:///{_default_sqlite_path}"

LOG_LEVEL = (os.getenv("LOG_LEVEL", "INFO") or "INFO").strip().upper()

# -------------------- Merit lists --------------------
# Waitlist size as a fraction of seats (0.2 -> 20% of seats, rounded up).
MERIT_WAITLIST_FACTOR = float(os.getenv("MERIT_WAITLIST_FACTOR", "0.2") or "0.2")

# Ranking bucket width: scores in the same bucket fall through to the tie-break.
SCORE_EPSILON = 1e-6

# Actor recorded on status write-backs made by merit-list generation.
SYSTEM_ACTOR_ID = os.getenv("SYSTEM_ACTOR_ID", "system") or "system"

# -------------------- Applications --------------------
# Application numbers look like APP-2026-48213.
APPLICATION_NUMBER_PREFIX = (os.getenv("APPLICATION_NUMBER_PREFIX", "APP") or "APP").strip()
