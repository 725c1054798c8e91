"""Tests for webhook routing and the opportunity/activity sync flows."""

import asyncio
import json
import threading

import httpx
import pytest

from pipeliner_asana.sync import (
    AsanaAPIError,
    AsanaClient,
    MemoryMappingStore,
    WebhookDispatcher,
    WebhookPayload,
    route,
)
from pipeliner_asana.sync.dispatcher import (
    HANDLE_ACTIVITY,
    HANDLE_NEW_OPPORTUNITY,
    HANDLE_UPDATED_OPPORTUNITY,
    audit_record,
)
from pipeliner_asana.sync.templates import INDUSTRIAL_AUTOMATION


def payload(entity, action, **data) -> WebhookPayload:
    return WebhookPayload.model_validate({"entity": entity, "action": action, "data": data})


class ThreadRecordingStore(MemoryMappingStore):
    """Memory store that records which threads touched it."""

    def __init__(self):
        super().__init__()
        self.threads = []

    def get(self, opportunity_id):
        self.threads.append(threading.get_ident())
        return super().get(opportunity_id)

    def put_if_absent(self, opportunity_id, project_gid):
        self.threads.append(threading.get_ident())
        return super().put_if_absent(opportunity_id, project_gid)


class TestRoute:
    @pytest.mark.parametrize(
        "entity, action, expected",
        [
            ("Opportunity", "create", HANDLE_NEW_OPPORTUNITY),
            ("opportunity", "created", HANDLE_NEW_OPPORTUNITY),
            ("OPPORTUNITY", "Created", HANDLE_NEW_OPPORTUNITY),
            ("Opportunity", "update", HANDLE_UPDATED_OPPORTUNITY),
            ("opportunity", "UPDATED", HANDLE_UPDATED_OPPORTUNITY),
            ("Activity", "created", HANDLE_ACTIVITY),
            ("activity", "deleted", HANDLE_ACTIVITY),
            ("Opportunity", "deleted", None),
            ("Contact", "created", None),
            (None, None, None),
        ],
    )
    def test_table(self, entity, action, expected):
        assert route(entity, action) == expected


class TestNewOpportunity:
    @pytest.mark.asyncio
    async def test_creates_project_sections_and_tasks(self, dispatcher, fake_asana, store):
        outcome = await dispatcher.dispatch(
            payload("Opportunity", "created", id="opp-1", name="Acme Line Upgrade", value=60000)
        )

        (project_request,) = fake_asana.calls("POST", "/projects")
        project = json.loads(project_request.content)["data"]
        assert project["color"] == "dark-orange"
        assert project["name"] == "Acme Line Upgrade - ($60,000)"

        gid = outcome.project_gid
        assert outcome.project_created
        assert len(fake_asana.calls("POST", f"/projects/{gid}/sections")) == 8
        assert len(fake_asana.calls("POST", "/tasks")) == 8
        assert all(task["projects"] == [gid] for task in fake_asana.tasks)
        assert store.get("opp-1") == gid
        assert outcome.succeeded == 16 and outcome.failed == 0

    @pytest.mark.asyncio
    async def test_partial_failures_do_not_fail_delivery(self, dispatcher, fake_asana):
        fake_asana.fail_names.update({"🚚 Shipping", "🔌 Panel Build"})

        outcome = await dispatcher.dispatch(payload("Opportunity", "create", id="opp-1"))

        assert outcome.project_created
        assert outcome.failed == 2
        assert outcome.succeeded == 14
        assert audit_record("d-1", outcome)["failures"] == [
            "section:🚚 Shipping",
            "task:🔌 Panel Build",
        ]

    @pytest.mark.asyncio
    async def test_project_failure_propagates(self, dispatcher, fake_asana, store):
        fake_asana.fail_names.add("New Opportunity")

        with pytest.raises(AsanaAPIError):
            await dispatcher.dispatch(payload("Opportunity", "create", id="opp-1"))

        assert fake_asana.count("POST", "/sections") == 0
        assert store.get("opp-1") is None

    @pytest.mark.asyncio
    async def test_redelivered_create_updates_existing_project(self, dispatcher, fake_asana):
        first = await dispatcher.dispatch(payload("Opportunity", "created", id="opp-1", name="A"))
        second = await dispatcher.dispatch(payload("Opportunity", "created", id="opp-1", name="B"))

        assert len(fake_asana.calls("POST", "/projects")) == 1
        assert second.project_gid == first.project_gid
        assert second.project_updated and not second.project_created
        assert fake_asana.projects[first.project_gid]["name"] == "B"

    @pytest.mark.asyncio
    async def test_concurrent_creates_make_one_project(self, dispatcher, fake_asana):
        await asyncio.gather(
            dispatcher.dispatch(payload("Opportunity", "create", id="opp-1")),
            dispatcher.dispatch(payload("Opportunity", "create", id="opp-1")),
        )

        assert len(fake_asana.calls("POST", "/projects")) == 1
        assert fake_asana.count("PUT", "") == 1

    @pytest.mark.asyncio
    async def test_without_id_is_created_but_not_mapped(self, dispatcher, fake_asana, store):
        outcome = await dispatcher.dispatch(payload("Opportunity", "create", name="No id"))

        assert outcome.project_created
        assert store._mappings == {}

    @pytest.mark.asyncio
    async def test_project_is_mapped_even_if_population_breaks(
        self, asana_settings, app_settings, fake_asana, store
    ):
        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, json=["oops"])
            return fake_asana.handler(request)

        dispatcher = WebhookDispatcher(
            asana=AsanaClient(asana_settings, transport=httpx.MockTransport(handler)),
            store=store,
            template=INDUSTRIAL_AUTOMATION,
            app_settings=app_settings,
        )

        first = await dispatcher.dispatch(payload("Opportunity", "created", id="opp-1"))
        second = await dispatcher.dispatch(payload("Opportunity", "created", id="opp-1"))

        assert store.get("opp-1") == first.project_gid
        assert first.failed == 0
        assert second.project_updated
        assert len(fake_asana.calls("POST", "/projects")) == 1

    @pytest.mark.asyncio
    async def test_mapping_is_stored_before_sections_are_created(
        self, asana_settings, app_settings, fake_asana, store
    ):
        seen = []

        def handler(request):
            if request.url.path.endswith("/sections"):
                seen.append(store.get("opp-1"))
            return fake_asana.handler(request)

        dispatcher = WebhookDispatcher(
            asana=AsanaClient(asana_settings, transport=httpx.MockTransport(handler)),
            store=store,
            template=INDUSTRIAL_AUTOMATION,
            app_settings=app_settings,
        )

        outcome = await dispatcher.dispatch(payload("Opportunity", "created", id="opp-1"))

        assert seen and set(seen) == {outcome.project_gid}

    @pytest.mark.asyncio
    async def test_store_runs_off_the_event_loop(self, asana_client, app_settings):
        store = ThreadRecordingStore()
        dispatcher = WebhookDispatcher(
            asana=asana_client,
            store=store,
            template=INDUSTRIAL_AUTOMATION,
            app_settings=app_settings,
        )

        await dispatcher.dispatch(payload("Opportunity", "created", id="opp-1"))

        assert store.threads
        assert threading.get_ident() not in store.threads


class TestUpdatedOpportunity:
    @pytest.mark.asyncio
    async def test_updates_mapped_project(self, dispatcher, fake_asana, store):
        store.put("opp-1", "p-77")

        outcome = await dispatcher.dispatch(
            payload("Opportunity", "updated", id="opp-1", name="Renamed", accountName="Acme")
        )

        assert fake_asana.calls("POST", "/projects") == []
        (request,) = fake_asana.calls("PUT", "/projects/p-77")
        data = json.loads(request.content)["data"]
        assert data["name"] == "Acme - Renamed"
        assert "Pipeliner ID: opp-1" in data["notes"]
        assert outcome.project_updated

    @pytest.mark.asyncio
    async def test_create_then_update_mutates_same_project(self, dispatcher, fake_asana):
        created = await dispatcher.dispatch(payload("Opportunity", "created", id="opp-1", name="A"))
        updated = await dispatcher.dispatch(payload("Opportunity", "updated", id="opp-1", name="B"))

        assert len(fake_asana.calls("POST", "/projects")) == 1
        assert updated.project_gid == created.project_gid
        assert fake_asana.projects[created.project_gid]["name"] == "B"

    @pytest.mark.asyncio
    async def test_unknown_opportunity_is_created(self, dispatcher, fake_asana, store):
        outcome = await dispatcher.dispatch(payload("Opportunity", "update", id="opp-9"))

        assert outcome.project_created
        assert store.get("opp-9") == outcome.project_gid

    @pytest.mark.asyncio
    async def test_update_failure_is_swallowed(self, dispatcher, fake_asana, store):
        store.put("opp-1", "p-77")
        fake_asana.fail_update = True

        outcome = await dispatcher.dispatch(payload("Opportunity", "update", id="opp-1"))

        assert outcome.project_updated is False
        assert fake_asana.calls("POST", "/projects") == []


class TestActivity:
    @pytest.mark.asyncio
    async def test_mapped_activity_becomes_task(self, dispatcher, fake_asana, store):
        store.put("opp-1", "p-77")

        outcome = await dispatcher.dispatch(
            payload(
                "Activity",
                "created",
                subject="Site visit",
                dueDate="2025-03-04T09:00:00Z",
                relatedOpportunityId="opp-1",
            )
        )

        (task,) = fake_asana.tasks
        assert task == {
            "gid": task["gid"],
            "name": "Site visit",
            "notes": "Activity from Pipeliner",
            "projects": ["p-77"],
            "due_on": "2025-03-04",
        }
        assert outcome.project_gid == "p-77"
        assert outcome.succeeded == 1

    @pytest.mark.asyncio
    async def test_opportunity_id_fallback_field(self, dispatcher, fake_asana, store):
        store.put("opp-1", "p-77")

        await dispatcher.dispatch(payload("activity", "updated", opportunityId="opp-1"))

        assert fake_asana.tasks[0]["name"] == "New Activity"
        assert "due_on" not in fake_asana.tasks[0]

    @pytest.mark.asyncio
    async def test_epoch_millisecond_due_date(self, dispatcher, fake_asana, store):
        store.put("opp-1", "p-77")

        await dispatcher.dispatch(
            payload("Activity", "created", dueDate=1741078800000, relatedOpportunityId="opp-1")
        )

        assert fake_asana.tasks[0]["due_on"] == "2025-03-04"

    @pytest.mark.asyncio
    async def test_unmapped_activity_is_dropped(self, dispatcher, fake_asana):
        outcome = await dispatcher.dispatch(
            payload("Activity", "created", subject="Call", relatedOpportunityId="opp-404")
        )

        assert fake_asana.requests == []
        assert "No project mapped" in outcome.message

    @pytest.mark.asyncio
    async def test_activity_without_opportunity(self, dispatcher, fake_asana):
        await dispatcher.dispatch(payload("Activity", "created", subject="Call"))
        assert fake_asana.requests == []


class TestUnhandled:
    @pytest.mark.asyncio
    async def test_unknown_entity_has_no_side_effects(self, dispatcher, fake_asana):
        outcome = await dispatcher.dispatch(payload("Contact", "created", name="Jane"))

        assert fake_asana.requests == []
        assert outcome.handler is None

    @pytest.mark.asyncio
    async def test_non_object_data(self, dispatcher, fake_asana):
        outcome = await dispatcher.dispatch(
            WebhookPayload.model_validate(
                {"entity": "Opportunity", "action": "create", "data": "oops"}
            )
        )

        assert outcome.project_created
        assert json.loads(fake_asana.requests[0].content)["data"]["name"] == "New Opportunity"
