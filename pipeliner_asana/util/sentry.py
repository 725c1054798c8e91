"""
Utility for Sentry error tracking integration.
"""

import logging

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

logger = logging.getLogger(__name__)


def init(sentry_settings=None) -> bool:
    """
    Initialize Sentry for error tracking.

    Args:
        sentry_settings: SentrySettings instance, defaults to the shared one

    Returns:
        bool: True if Sentry was initialised
    """
    if sentry_settings is None:
        from pipeliner_asana.settings import get_sentry_settings

        sentry_settings = get_sentry_settings()

    if not sentry_settings.is_configured():
        logger.info("Sentry integration is disabled or not configured.")
        return False

    try:
        logger.info(
            f"Initializing Sentry with environment: {sentry_settings.environment}, "
            f"release: {sentry_settings.release}"
        )

        sentry_sdk.init(
            dsn=sentry_settings.dsn,
            environment=sentry_settings.environment,
            release=sentry_settings.release,
            before_send=sentry_settings.get_before_send(),
            send_default_pii=False,
            integrations=[FastApiIntegration()],
            traces_sample_rate=sentry_settings.traces_sample_rate,
        )
        logger.info("Sentry initialization complete")
        return True
    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {str(e)}")
        return False
