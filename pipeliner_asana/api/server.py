import time
import uuid
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from pipeliner_asana import __version__
from pipeliner_asana.settings import (
    AppSettings,
    AsanaSettings,
    get_app_settings,
    get_asana_settings,
)
from pipeliner_asana.sync import (
    AsanaClient,
    Opportunity,
    WebhookDispatcher,
    WebhookPayload,
    build_mapping_store,
    load_template,
)
from pipeliner_asana.sync.dispatcher import audit_record
from pipeliner_asana.sync.mapping_store import SQLiteMappingStore
from pipeliner_asana.util.date_utils import to_iso_timestamp
from pipeliner_asana.util.logging import log_error_with_context
from pipeliner_asana.util.logging.middleware import setup_fastapi_logging

WEBHOOK_PATH = "/webhook/pipeliner"

TEST_OPPORTUNITY = {
    "name": "Equipment Upgrade Project",
    "accountName": "Sample Company",
    "value": 125000,
    "probability": 75,
    "stage": "Proposal",
    "closeDate": "2025-06-30",
    "ownerName": "John Smith",
    "description": "Complete controls upgrade including new HMI, VFDs, and vision system integration.",
    "projectType": "Control System Upgrade",
    "equipmentType": "Production Line",
    "facility": "Main Plant",
}


def build_dispatcher(
    app_settings: AppSettings,
    asana_settings: AsanaSettings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> WebhookDispatcher:
    """Wire the gateway, mapping store and template catalog from settings."""
    return WebhookDispatcher(
        asana=AsanaClient(asana_settings, transport=transport),
        store=build_mapping_store(app_settings),
        template=load_template(asana_settings.template_set, asana_settings.template_file),
        app_settings=app_settings,
    )


def _status(value) -> str:
    return "✓ Set" if value else "✗ Not set"


def log_startup_banner(
    app_settings: AppSettings,
    asana_settings: AsanaSettings,
    dispatcher: WebhookDispatcher,
) -> None:
    store = dispatcher.store
    store_name = (
        f"SQLite ({store.db_path})"
        if isinstance(store, SQLiteMappingStore)
        else "in-memory"
    )
    template = dispatcher.template

    logger.info("========================================")
    logger.info("🚀 Pipeliner-Asana Webhook Server Started")
    logger.info("========================================")
    logger.info(f"📍 Server listening on {app_settings.host}:{app_settings.port}")
    logger.info("🏗️  Mode: Creates Asana PROJECTS")
    logger.info("Endpoints available:")
    logger.info(f"  📥 Webhook: POST {WEBHOOK_PATH}")
    logger.info("  💚 Health:  GET  /health")
    logger.info("  🧪 Test:    POST /test")
    logger.info("Configuration status:")
    logger.info(f"  Asana Token: {_status(asana_settings.access_token)}")
    logger.info(f"  Workspace ID: {_status(asana_settings.workspace_id)}")
    logger.info(
        f"  Team ID: {'✓ Set' if asana_settings.team_id else '○ Optional'}"
    )
    logger.info(
        f"  Template Project ID: {'✓ Set (not used)' if asana_settings.template_project_id else '○ Optional'}"
    )
    logger.info(
        f"  Task template: {template.name} "
        f"({len(template.sections)} sections, {template.task_count} tasks)"
    )
    logger.info(f"  Mapping store: {store_name}")
    logger.info("Waiting for webhooks from Pipeliner...")
    logger.info("========================================")


async def _read_payload(request: Request) -> WebhookPayload:
    try:
        body = await request.json()
    except ValueError:
        logger.warning("Webhook body is not valid JSON, treating it as unhandled")
        body = {}

    if not isinstance(body, dict):
        body = {}
    return WebhookPayload.model_validate(body)


def _delivery_id(request: Request) -> str:
    return getattr(request.state, "delivery_id", None) or uuid.uuid4().hex


def create_app(
    app_settings: Optional[AppSettings] = None,
    asana_settings: Optional[AsanaSettings] = None,
    dispatcher: Optional[WebhookDispatcher] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Settings are read once here and passed to every component.

    Args:
        app_settings: Service settings, defaults to the environment
        asana_settings: Asana settings, defaults to the environment
        dispatcher: Prebuilt dispatcher, used by tests

    Returns:
        FastAPI: The application
    """
    app_settings = app_settings or get_app_settings()
    asana_settings = asana_settings or get_asana_settings()
    dispatcher = dispatcher or build_dispatcher(app_settings, asana_settings)

    app = FastAPI(
        title="Pipeliner to Asana Webhook",
        description="Creates an Asana project for each Pipeliner opportunity",
        version=__version__,
    )
    app.state.settings = app_settings
    app.state.asana_settings = asana_settings
    app.state.dispatcher = dispatcher

    setup_fastapi_logging(app)

    @app.on_event("startup")
    async def startup_event():
        log_startup_banner(app_settings, asana_settings, dispatcher)

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("👋 Shutting down webhook server...")

    @app.get("/")
    async def root():
        """
        Root endpoint - API information
        """
        return {
            "name": app_settings.app_name,
            "version": __version__,
            "status": "running",
            "endpoints": {
                "webhook": WEBHOOK_PATH,
                "health": "/health",
                "test": "/test",
            },
        }

    @app.get("/health")
    async def health_check():
        """
        Health check endpoint
        """
        return {
            "status": "healthy",
            "timestamp": to_iso_timestamp(),
            "message": "Webhook server is running!",
            "mode": "Creates Asana Projects",
        }

    @app.post(WEBHOOK_PATH)
    async def pipeliner_webhook(request: Request):
        """
        Receive a Pipeliner webhook and mirror it into Asana.

        Always answers 200 unless a project could not be created.
        """
        delivery_id = _delivery_id(request)
        payload = await _read_payload(request)
        logger.info(
            f"Webhook received at {to_iso_timestamp()}: {payload.entity}/{payload.action}"
        )

        try:
            outcome = await dispatcher.dispatch(payload)
        except Exception as e:
            log_error_with_context(
                logger,
                e,
                {
                    "delivery_id": delivery_id,
                    "entity": payload.entity,
                    "action": payload.action,
                },
            )
            logger.bind(audit=True).error(
                f"Delivery {delivery_id} failed: {payload.entity}/{payload.action} - {e}"
            )
            return JSONResponse(
                status_code=500,
                content={"success": False, "error": str(e), "delivery_id": delivery_id},
            )

        logger.bind(audit=True).info(
            f"Delivery outcome: {audit_record(delivery_id, outcome)}"
        )
        return {
            "success": True,
            "message": "Webhook processed successfully",
            "delivery_id": delivery_id,
            "result": outcome.to_dict(),
        }

    @app.post("/test")
    async def test_webhook(request: Request):
        """
        Simulate a Pipeliner "opportunity created" webhook with sample data.
        """
        logger.info("Test endpoint called")
        delivery_id = _delivery_id(request)
        test_data = {
            "entity": "Opportunity",
            "action": "create",
            "data": {"id": f"test-{int(time.time() * 1000)}", **TEST_OPPORTUNITY},
        }

        try:
            outcome = await dispatcher.handle_new_opportunity(
                Opportunity.model_validate(test_data["data"])
            )
        except Exception as e:
            log_error_with_context(logger, e, {"delivery_id": delivery_id, "test": True})
            return JSONResponse(
                status_code=500,
                content={"success": False, "error": str(e), "delivery_id": delivery_id},
            )

        logger.bind(audit=True).info(
            f"Delivery outcome: {audit_record(delivery_id, outcome)}"
        )
        return {
            "success": True,
            "message": "Test completed! Check Asana for the new project.",
            "delivery_id": delivery_id,
            "testData": test_data,
            "asanaUrl": "Check your Asana workspace for the new project",
            "result": outcome.to_dict(),
        }

    return app
