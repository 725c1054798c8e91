"""
Client for the Asana REST API.

Each method maps to one Asana endpoint and is awaited sequentially by the
caller. Only project creation raises; section and task calls return an
ItemOutcome per item so one failure never stops the rest of a template.
"""

from typing import Any, Dict, List, Optional

import httpx

from pipeliner_asana.settings import AsanaSettings
from pipeliner_asana.util.logging import get_logger

from .formatter import template_context
from .models import ItemOutcome, Opportunity, Section
from .templates import TemplateSet

logger = get_logger(__name__)

PROJECT_URL = "https://app.asana.com/0/{gid}/list"


class AsanaAPIError(Exception):
    """Raised when Asana rejects or fails a call whose failure is fatal."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


def _describe_error(error: Exception) -> str:
    """Short error text including Asana's error messages when present."""
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        try:
            errors = response.json().get("errors") or []
            messages = [e.get("message") for e in errors if isinstance(e, dict)]
        except (ValueError, AttributeError):
            messages = []
        detail = "; ".join(m for m in messages if m) or response.text
        return f"HTTP {response.status_code}: {detail}"
    return f"{type(error).__name__}: {error}"


def _response_data(response: httpx.Response) -> Any:
    """The `data` member of an Asana response body, or None if there is none."""
    try:
        body = response.json()
    except ValueError:
        return None
    return body.get("data") if isinstance(body, dict) else None


class AsanaClient:
    """
    Thin async wrapper over the Asana endpoints used by the sync.

    Args:
        settings: Asana settings (token, workspace, team, timeouts)
        transport: Optional httpx transport, used by tests
    """

    def __init__(
        self,
        settings: AsanaSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return self.settings.is_configured()

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.api_url,
            headers=self.settings.get_headers(),
            timeout=self.settings.timeout,
            transport=self._transport,
        )

    async def _post(self, path: str, data: Dict[str, Any]) -> Dict[str, Any]:
        async with self._client() as client:
            response = await client.post(path, json={"data": data})
            response.raise_for_status()
            record = _response_data(response)
            if not isinstance(record, dict):
                logger.warning(
                    f"Unexpected Asana response for POST {path}. Status code: {response.status_code}"
                )
                return {}
            return record

    async def create_project(
        self,
        name: str,
        notes: str,
        color: str,
        public: Optional[bool] = None,
    ) -> Optional[str]:
        """
        Create a project in the configured workspace.

        Args:
            name: Project name
            notes: Project notes
            color: Asana color name (e.g. "dark-red")
            public: Project visibility, defaults to ASANA_PUBLIC_PROJECTS

        Returns:
            Optional[str]: The new project gid, or None when no token is configured

        Raises:
            AsanaAPIError: If Asana cannot be reached or rejects the project
        """
        if not self.is_configured:
            logger.warning(
                f"WARNING: No Asana token configured. Would create project: {name}"
            )
            return None

        payload: Dict[str, Any] = {
            "name": name,
            "notes": notes,
            "color": color,
            "workspace": self.settings.workspace_id,
            "public": self.settings.public_projects if public is None else public,
            "default_view": self.settings.default_view,
        }

        if self.settings.team_id:
            payload["team"] = self.settings.team_id
        else:
            logger.warning(
                "No team ID configured. This may cause errors in team-based workspaces."
            )

        logger.info(f"Creating Asana project: {name}")

        try:
            project = await self._post("/projects", payload)
        except httpx.HTTPError as e:
            message = _describe_error(e)
            logger.error(f"✗ Failed to create Asana project: {message}")
            status_code = (
                e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
            )
            raise AsanaAPIError(
                f"Failed to create Asana project: {message}", status_code=status_code
            ) from e

        gid = project.get("gid")
        if not gid:
            raise AsanaAPIError("Asana returned a project without a gid", details=project)

        logger.info(f"✓ Asana project created! Project URL: {PROJECT_URL.format(gid=gid)}")
        return str(gid)

    async def create_section(self, project_gid: str, name: str) -> ItemOutcome:
        try:
            section = await self._post(
                f"/projects/{project_gid}/sections", {"name": name}
            )
        except httpx.HTTPError as e:
            message = _describe_error(e)
            logger.error(f"  ✗ Failed to create section {name}: {message}")
            return ItemOutcome(kind="section", name=name, ok=False, error=message)

        logger.info(f"  → Created section: {name}")
        return ItemOutcome(kind="section", name=name, ok=True, gid=section.get("gid"))

    async def create_sections(
        self, project_gid: str, names: List[str]
    ) -> List[ItemOutcome]:
        """Create sections one by one; failures are logged and skipped."""
        return [await self.create_section(project_gid, name) for name in names]

    async def list_sections(self, project_gid: str) -> List[Section]:
        """
        List the sections of a project.

        Returns:
            List[Section]: Sections in Asana order, empty if the call fails
        """
        try:
            async with self._client() as client:
                response = await client.get(f"/projects/{project_gid}/sections")
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to get project sections: {_describe_error(e)}")
            return []

        rows = _response_data(response)
        if not isinstance(rows, list):
            logger.error(
                f"Unexpected Asana response listing sections of project {project_gid}"
            )
            return []

        return [
            Section(gid=str(row["gid"]), name=row.get("name", ""))
            for row in rows
            if isinstance(row, dict) and row.get("gid")
        ]

    async def create_task(
        self,
        project_gid: str,
        name: str,
        notes: str = "",
        section_gid: Optional[str] = None,
        due_on: Optional[str] = None,
    ) -> ItemOutcome:
        """
        Create a task in a project, optionally inside one of its sections.

        Returns:
            ItemOutcome: ok=False with the error text if the call failed
        """
        if not self.is_configured:
            logger.warning(f"WARNING: No Asana token configured. Would create task: {name}")
            return ItemOutcome(
                kind="task", name=name, ok=False, error="Asana token not configured"
            )

        payload: Dict[str, Any] = {
            "name": name,
            "notes": notes,
            "projects": [project_gid],
        }
        if section_gid:
            payload["memberships"] = [{"project": project_gid, "section": section_gid}]
        if due_on:
            payload["due_on"] = due_on

        try:
            task = await self._post("/tasks", payload)
        except httpx.HTTPError as e:
            message = _describe_error(e)
            logger.error(f"  ✗ Failed to create task {name}: {message}")
            return ItemOutcome(kind="task", name=name, ok=False, error=message)

        logger.info(f"  → Created task: {name}")
        return ItemOutcome(kind="task", name=name, ok=True, gid=task.get("gid"))

    async def update_project(self, project_gid: str, name: str, notes: str) -> bool:
        """
        Update a project's name and notes. Failures are logged, never raised.

        Returns:
            bool: True if Asana accepted the update
        """
        if not self.is_configured:
            logger.warning(
                f"WARNING: No Asana token configured. Would update project: {project_gid}"
            )
            return False

        try:
            async with self._client() as client:
                response = await client.put(
                    f"/projects/{project_gid}",
                    json={"data": {"name": name, "notes": notes}},
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to update project {project_gid}: {_describe_error(e)}")
            return False

        logger.info(f"✓ Project {project_gid} updated successfully")
        return True

    async def populate_project(
        self,
        project_gid: str,
        template: TemplateSet,
        opportunity: Opportunity,
    ) -> List[ItemOutcome]:
        """
        Create the template's sections and tasks in a new project.

        Tasks whose section could not be created or resolved are created
        without a section.

        Returns:
            List[ItemOutcome]: One outcome per section and task, in order
        """
        outcomes = await self.create_sections(project_gid, template.section_names)

        logger.info("Creating initial project tasks...")
        sections = await self.list_sections(project_gid)
        section_ids = {section.name: section.gid for section in sections}
        context = template_context(opportunity)

        for section_name, task in template.iter_tasks():
            outcomes.append(
                await self.create_task(
                    project_gid,
                    task.name,
                    task.render_notes(context),
                    section_gid=section_ids.get(section_name),
                )
            )

        return outcomes
