"""
ASGI entry point for the helper control API.

Used by uvicorn. The room token comes from HELPER_LAUNCH_URL, which may
live in .env during development.
"""

from dotenv import load_dotenv

load_dotenv()

from config import AppConfig  # pylint: disable=wrong-import-position
from server.app import create_app  # pylint: disable=wrong-import-position

app = create_app(AppConfig.load_from_env())
