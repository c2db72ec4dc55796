import os
from dotenv import load_dotenv

load_dotenv()

REDIS_PASSWORD = os.getenv("REDIS_PASSWORD")
API_TOKEN = os.getenv("API_TOKEN")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CONFIG_PATH = os.getenv("EXPECTED_FAILURES_CONFIG", "config/expected_failures.yaml")
