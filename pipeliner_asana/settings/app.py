from pathlib import Path
from typing import Optional

from .base import BaseSettings

MEMORY_STORE = "memory"


class AppSettings(BaseSettings):
    """
    General service settings.
    """

    def __init__(self):
        """Read the service settings from the environment."""
        self.app_name = self.get_env("APP_NAME", "pipeliner-asana")

        self.debug = self.get_bool_env("DEBUG", False)

        # Listening address for uvicorn
        self.host = self.get_env("HOST", "0.0.0.0")
        self.port = self.get_int_env("PORT", 10000)

        # Data directory for the mapping database and log files
        self.data_dir = self.get_env("DATA_DIR", "data")

        self.mapping_db_path = self.get_env(
            "MAPPING_DB_PATH", str(Path(self.data_dir) / "mappings.db")
        )

        # Base URL of the Pipeliner web client, used for links in project notes
        self.pipeliner_base_url: Optional[str] = self._parse_base_url()

        # Logging
        self.log_json = self.get_bool_env("LOG_JSON", False)
        self.log_to_file = self.get_bool_env("LOG_TO_FILE", False)

    def _parse_base_url(self) -> Optional[str]:
        base_url = self.get_env("PIPELINER_BASE_URL")
        if not base_url:
            return None
        return base_url.rstrip("/")

    @property
    def log_level(self) -> str:
        return "DEBUG" if self.debug else "INFO"

    def uses_memory_store(self) -> bool:
        """
        Whether opportunity mappings are kept in process memory only.

        Returns:
            bool: True if MAPPING_DB_PATH selects the in-memory store
        """
        return self.mapping_db_path.strip().lower() in (MEMORY_STORE, ":memory:")
