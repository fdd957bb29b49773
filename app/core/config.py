"""
Application settings.

Everything is read once from the environment (``.env`` is loaded first).
"""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

APP_NAME = os.getenv("APP_NAME", "WeeklyContest")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
DEBUG = os.getenv("DEBUG", "True").lower() == "true"

# Database
MONGODB_URL = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "weekly_contest")
STORE_TIMEOUT_SECONDS = float(os.getenv("STORE_TIMEOUT_SECONDS", "5"))

# Scheduler
SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "True").lower() == "true"
SCHEDULER_TICK_SECONDS = int(os.getenv("SCHEDULER_TICK_SECONDS", "60"))

# Contest defaults
CONTEST_DURATION_DAYS = int(os.getenv("CONTEST_DURATION_DAYS", "7"))
CONTEST_TITLE_TEMPLATE = os.getenv(
    "CONTEST_TITLE_TEMPLATE", "Weekly Contest - Week {week} {year}"
)
CONTEST_DESCRIPTION = os.getenv(
    "CONTEST_DESCRIPTION",
    "Join this week's contest! One free entry per user, "
    "participation closes when the week ends."
)
CONTEST_PRIZE = os.getenv("CONTEST_PRIZE", "Main prize")
# 0 = unlimited
CONTEST_MAX_PARTICIPANTS = int(os.getenv("CONTEST_MAX_PARTICIPANTS", "0"))
CONTEST_AUTO_DRAW = os.getenv("CONTEST_AUTO_DRAW", "True").lower() == "true"

# Bearer credentials (issued by the auth service)
SECRET_KEY = os.getenv("SECRET_KEY")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")
