import logging
import os
from typing import Any

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class BaseSettings:
    """
    Base class for the service settings.
    Values come from environment variables, optionally seeded from a .env file.
    """

    # Tracks whether a .env file has been loaded already
    _dotenv_loaded = False

    @classmethod
    def ensure_dotenv_loaded(cls):
        """
        Load the .env file once per process.
        """
        if not cls._dotenv_loaded:
            dotenv_path = os.environ.get("DOTENV_PATH")
            if dotenv_path and os.path.exists(dotenv_path):
                load_dotenv(dotenv_path=dotenv_path)
                logger.info(f"Loaded environment from file: {dotenv_path}")
            else:
                for path in [".env", "../.env"]:
                    if os.path.exists(path):
                        load_dotenv(dotenv_path=path)
                        logger.info(f"Loaded environment from file: {path}")
                        break

            BaseSettings._dotenv_loaded = True

    @classmethod
    def get_env(
        cls, name: str, default: Any = None, required: bool = False
    ) -> Any:
        """
        Read a value from the environment.

        Args:
            name: Environment variable name
            default: Value returned when the variable is missing or empty
            required: Raise ValueError when the variable is missing

        Returns:
            The variable value or the default
        """
        cls.ensure_dotenv_loaded()

        value = os.environ.get(name)

        if value is None or value == "":
            if required:
                raise ValueError(f"Required environment variable not found: {name}")
            return default

        return value

    @classmethod
    def get_bool_env(cls, name: str, default: bool = False) -> bool:
        value = cls.get_env(name)
        if value is None:
            return default

        if value.lower() in ("true", "yes", "1", "t", "y"):
            return True
        elif value.lower() in ("false", "no", "0", "f", "n"):
            return False

        logger.warning(
            f"Value '{value}' for {name} is not a boolean. Using default: {default}"
        )
        return default

    @classmethod
    def get_int_env(cls, name: str, default: int = 0) -> int:
        value = cls.get_env(name)
        if value is None:
            return default

        try:
            return int(value)
        except ValueError:
            logger.warning(
                f"Value '{value}' for {name} is not an integer. Using default: {default}"
            )
            return default

    @classmethod
    def get_float_env(cls, name: str, default: float = 0.0) -> float:
        value = cls.get_env(name)
        if value is None:
            return default

        try:
            return float(value)
        except ValueError:
            logger.warning(
                f"Value '{value}' for {name} is not a number. Using default: {default}"
            )
            return default
