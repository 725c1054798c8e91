"""
Helpers for the logging setup.
"""

from loguru import logger


def get_logger(name=None):
    """
    Return a Loguru logger bound to the given module name.

    Args:
        name: Module name, usually __name__

    Returns:
        logger: Bound logger
    """
    if name:
        return logger.bind(module=name)
    return logger


def log_error_with_context(logger, error, context=None):
    """
    Log an exception together with extra context in a consistent shape.

    Args:
        logger: Logger instance
        error: Exception object
        context: Dict with additional information
    """
    error_info = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "context": context or {},
    }

    logger.opt(exception=error).error(f"Error details: {error_info}")
