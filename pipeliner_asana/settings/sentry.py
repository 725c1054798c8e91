from typing import Any, Callable, Dict, List, Optional

from .base import BaseSettings


class SentrySettings(BaseSettings):
    """
    Settings for Sentry error tracking.
    """

    def __init__(self):
        """Read the Sentry settings from the environment."""
        self.dsn = self.get_env("SENTRY_DSN", "")

        self.environment = self.get_env("SENTRY_ENVIRONMENT", "development")

        self.release = self.get_env("SENTRY_RELEASE", "0.1.0")

        self.traces_sample_rate = self.get_float_env(
            "SENTRY_TRACES_SAMPLE_RATE", 0.0
        )

        # Exception class names that are never reported
        self.non_reported_exceptions = self._get_non_reported_exceptions()

        self.enabled = self.get_bool_env("SENTRY_ENABLED", False)

    def _get_non_reported_exceptions(self) -> List[str]:
        exceptions_str = self.get_env("SENTRY_NON_REPORTED_EXCEPTIONS", "")
        return [ex.strip() for ex in exceptions_str.split(",") if ex.strip()]

    def is_configured(self) -> bool:
        """
        Check whether Sentry is enabled and has a DSN.

        Returns:
            bool: True if Sentry should be initialised
        """
        return self.enabled and bool(self.dsn)

    def get_before_send(
        self,
    ) -> Callable[[Dict[str, Any], Dict[str, Any]], Optional[Dict[str, Any]]]:
        """
        Build a before_send hook that drops the non-reported exceptions.

        Returns:
            Callable: before_send hook for the Sentry SDK
        """

        def before_send(
            event: Dict[str, Any], hint: Dict[str, Any]
        ) -> Optional[Dict[str, Any]]:
            if "exc_info" in hint:
                exc_type, exc_value, tb = hint["exc_info"]
                if type(exc_value).__name__ in self.non_reported_exceptions:
                    return None

            return event

        return before_send
