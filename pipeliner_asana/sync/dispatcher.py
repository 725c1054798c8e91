"""
Routing of Pipeliner webhook deliveries to the Asana sync handlers.
"""

from typing import Any, Dict, Optional

from fastapi.concurrency import run_in_threadpool

from pipeliner_asana.settings import AppSettings
from pipeliner_asana.util.logging import get_logger

from .asana_client import AsanaClient
from .formatter import (
    format_date,
    format_project_name,
    format_project_notes,
    get_project_color,
)
from .mapping_store import MappingStore
from .models import Activity, DeliveryOutcome, Opportunity, WebhookPayload
from .templates import TemplateSet

logger = get_logger(__name__)

HANDLE_NEW_OPPORTUNITY = "new_opportunity"
HANDLE_UPDATED_OPPORTUNITY = "updated_opportunity"
HANDLE_ACTIVITY = "activity"

# (entity, action) -> handler; an action of None matches any action
ROUTES = {
    ("opportunity", "create"): HANDLE_NEW_OPPORTUNITY,
    ("opportunity", "created"): HANDLE_NEW_OPPORTUNITY,
    ("opportunity", "update"): HANDLE_UPDATED_OPPORTUNITY,
    ("opportunity", "updated"): HANDLE_UPDATED_OPPORTUNITY,
    ("activity", None): HANDLE_ACTIVITY,
}


def route(entity: Optional[str], action: Optional[str]) -> Optional[str]:
    """
    Find the handler for an entity/action pair, ignoring case.

    Returns:
        Optional[str]: Handler name, or None for unhandled pairs
    """
    entity_key = (entity or "").strip().lower()
    action_key = (action or "").strip().lower()
    return ROUTES.get((entity_key, action_key)) or ROUTES.get((entity_key, None))


class WebhookDispatcher:
    """
    Applies webhook deliveries to Asana.

    Args:
        asana: Gateway to the Asana API
        store: Opportunity -> project mapping store
        template: Section/task catalog for new projects
        app_settings: Service settings (used for the Pipeliner link base URL)
    """

    def __init__(
        self,
        asana: AsanaClient,
        store: MappingStore,
        template: TemplateSet,
        app_settings: AppSettings,
    ):
        self.asana = asana
        self.store = store
        self.template = template
        self.pipeliner_base_url = app_settings.pipeliner_base_url

    async def dispatch(self, payload: WebhookPayload) -> DeliveryOutcome:
        """
        Route one delivery to its handler.

        Raises:
            AsanaAPIError: If a required project could not be created
        """
        outcome = DeliveryOutcome(entity=payload.entity, action=payload.action)
        handler = route(payload.entity, payload.action)
        outcome.handler = handler

        if handler == HANDLE_NEW_OPPORTUNITY:
            await self.handle_new_opportunity(
                Opportunity.model_validate(payload.data), outcome
            )
        elif handler == HANDLE_UPDATED_OPPORTUNITY:
            await self.handle_updated_opportunity(
                Opportunity.model_validate(payload.data), outcome
            )
        elif handler == HANDLE_ACTIVITY:
            await self.handle_activity(Activity.model_validate(payload.data), outcome)
        else:
            logger.info(f"Unhandled entity/action: {payload.entity}/{payload.action}")
            outcome.message = "Unhandled entity/action, ignored"

        return outcome

    async def handle_new_opportunity(
        self, opportunity: Opportunity, outcome: Optional[DeliveryOutcome] = None
    ) -> DeliveryOutcome:
        """Create the project for an opportunity, or update it if one is mapped."""
        outcome = outcome or DeliveryOutcome(entity="Opportunity", action="create")
        logger.info(
            f"Creating new Asana project for opportunity: {opportunity.name or opportunity.id}"
        )

        if not opportunity.id:
            await self._create_project(opportunity, outcome)
            return outcome

        async with self.store.lock(opportunity.id):
            project_gid = await run_in_threadpool(self.store.get, opportunity.id)
            if project_gid:
                logger.info(
                    f"Opportunity {opportunity.id} already has project {project_gid}, updating instead"
                )
                await self._update_project(project_gid, opportunity, outcome)
            else:
                await self._create_project(opportunity, outcome)

        return outcome

    async def handle_updated_opportunity(
        self, opportunity: Opportunity, outcome: Optional[DeliveryOutcome] = None
    ) -> DeliveryOutcome:
        """Update the mapped project, creating one if the opportunity is unknown."""
        outcome = outcome or DeliveryOutcome(entity="Opportunity", action="update")
        logger.info(
            f"Updating Asana project for opportunity: {opportunity.name or opportunity.id}"
        )

        if not opportunity.id:
            logger.warning("Opportunity update without id, creating a new project")
            await self._create_project(opportunity, outcome)
            return outcome

        async with self.store.lock(opportunity.id):
            project_gid = await run_in_threadpool(self.store.get, opportunity.id)
            if project_gid:
                await self._update_project(project_gid, opportunity, outcome)
            else:
                logger.info("Project not found, creating new one")
                await self._create_project(opportunity, outcome)

        return outcome

    async def handle_activity(
        self, activity: Activity, outcome: Optional[DeliveryOutcome] = None
    ) -> DeliveryOutcome:
        """Add an activity as a task in its opportunity's project."""
        outcome = outcome or DeliveryOutcome(entity="Activity", action=None)
        logger.info(f"Processing Activity {outcome.action}: {activity.subject or activity.id}")

        opportunity_id = activity.opportunity_ref
        if not opportunity_id:
            logger.info("Activity is not linked to an opportunity, ignored")
            outcome.message = "Activity without related opportunity"
            return outcome

        project_gid = await run_in_threadpool(self.store.get, opportunity_id)
        if not project_gid:
            logger.info(f"No project mapped for opportunity {opportunity_id}, activity dropped")
            outcome.message = f"No project mapped for opportunity {opportunity_id}"
            return outcome

        outcome.project_gid = project_gid
        item = await self.asana.create_task(
            project_gid,
            activity.subject or "New Activity",
            activity.description or "Activity from Pipeliner",
            due_on=format_date(activity.due_date),
        )
        if item.ok:
            logger.info(f"  → Added activity task: {item.name}")
        outcome.items.append(item)
        return outcome

    async def _create_project(
        self, opportunity: Opportunity, outcome: DeliveryOutcome
    ) -> Optional[str]:
        project_gid = await self.asana.create_project(
            name=format_project_name(opportunity),
            notes=format_project_notes(opportunity, self.pipeliner_base_url),
            color=get_project_color(opportunity),
        )
        if not project_gid:
            outcome.message = "Asana not configured, project not created"
            return None

        logger.info(f"✓ Created Asana project: {project_gid}")
        outcome.project_gid = project_gid
        outcome.project_created = True

        # Map before populating so a redelivery never creates a second project
        if opportunity.id and not await run_in_threadpool(
            self.store.put_if_absent, opportunity.id, project_gid
        ):
            logger.warning(
                f"Opportunity {opportunity.id} was mapped concurrently; "
                f"project {project_gid} is a duplicate"
            )

        outcome.items.extend(
            await self.asana.populate_project(project_gid, self.template, opportunity)
        )
        if outcome.failed:
            logger.warning(
                f"Project {project_gid} populated with {outcome.failed} failed item(s)"
            )

        return project_gid

    async def _update_project(
        self, project_gid: str, opportunity: Opportunity, outcome: DeliveryOutcome
    ) -> bool:
        outcome.project_gid = project_gid
        updated = await self.asana.update_project(
            project_gid,
            name=format_project_name(opportunity),
            notes=format_project_notes(opportunity, self.pipeliner_base_url),
        )
        outcome.project_updated = updated
        if updated:
            logger.info(f"✓ Updated Asana project: {project_gid}")
        return updated


def audit_record(delivery_id: str, outcome: DeliveryOutcome) -> Dict[str, Any]:
    """Flat summary of a delivery for the audit log line."""
    return {
        "delivery_id": delivery_id,
        "entity": outcome.entity,
        "action": outcome.action,
        "handler": outcome.handler,
        "project_gid": outcome.project_gid,
        "project_created": outcome.project_created,
        "project_updated": outcome.project_updated,
        "succeeded": outcome.succeeded,
        "failed": outcome.failed,
        "failures": [f"{i.kind}:{i.name}" for i in outcome.items if not i.ok],
    }
