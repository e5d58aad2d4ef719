import os
from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./marketplace.db")
ENVIRONMENT = os.getenv("ENVIRONMENT", "production")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

TEMPORAL_HOST = os.getenv("TEMPORAL_HOST", "localhost")
TEMPORAL_PORT = os.getenv("TEMPORAL_PORT", "7233")
TEMPORAL_NAMESPACE = os.getenv("TEMPORAL_NAMESPACE", "default")
APPROVAL_TASK_QUEUE = os.getenv("APPROVAL_TASK_QUEUE", "approval-task-queue")

API_HOST = os.getenv("API_HOST", "localhost")
API_PORT = int(os.getenv("API_PORT", 8000))

# Buyers may request a return this many days after delivery
RETURN_WINDOW_DAYS = int(os.getenv("RETURN_WINDOW_DAYS", 7))

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def is_development() -> bool:
    return ENVIRONMENT.lower() == "development"


def temporal_address() -> str:
    return f"{TEMPORAL_HOST}:{TEMPORAL_PORT}"
