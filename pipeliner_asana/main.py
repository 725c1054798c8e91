import uvicorn

from pipeliner_asana.util.sentry import init as init_sentry


def main():
    # Import inside the function so logging is configured before the app loads
    from pipeliner_asana.settings import get_app_settings
    from pipeliner_asana.util.logging import setup_logging

    app_settings = get_app_settings()

    logger = setup_logging(
        log_level=app_settings.log_level,
        json_logs=app_settings.log_json,
        log_to_file=app_settings.log_to_file,
        data_dir=app_settings.data_dir,
    )
    init_sentry()

    logger.info(
        f"Starting {app_settings.app_name} in {'debug' if app_settings.debug else 'production'} mode"
    )
    uvicorn.run(
        "pipeliner_asana.api.server:create_app",
        factory=True,
        host=app_settings.host,
        port=app_settings.port,
        reload=app_settings.debug,
        log_config=None,
    )


if __name__ == "__main__":
    main()
