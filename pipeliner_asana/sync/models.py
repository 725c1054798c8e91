import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _to_optional_str(v):
    if v is None:
        return None
    if isinstance(v, str):
        return v.strip() or None
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return None


def _to_optional_number(v):
    if v is None or isinstance(v, bool):
        return None
    try:
        if isinstance(v, (int, float)):
            number = float(v)
        else:
            number = float(str(v).replace(",", "").strip())
    except (ValueError, OverflowError):
        return None
    # inf and nan cannot be formatted or coloured
    return number if math.isfinite(number) else None


def _to_optional_date(v):
    # Epoch milliseconds are kept as numbers for the date helpers
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return v
    return _to_optional_str(v)


class WebhookPayload(BaseModel):
    """Body posted by Pipeliner to /webhook/pipeliner."""

    model_config = ConfigDict(extra="allow")

    entity: Optional[str] = None
    action: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("entity", "action", mode="before")
    def coerce_text(cls, v):
        return _to_optional_str(v)

    @field_validator("data", mode="before")
    def coerce_data(cls, v):
        return v if isinstance(v, dict) else {}


class Opportunity(BaseModel):
    """
    Pipeliner opportunity as sent in the webhook `data` field.

    Every field is optional. Values that cannot be parsed are dropped so the
    formatter falls back to its placeholder text.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = None
    name: Optional[str] = None
    account_name: Optional[str] = Field(default=None, alias="accountName")
    value: Optional[float] = None
    probability: Optional[float] = None
    stage: Optional[str] = None
    close_date: Optional[str] = Field(default=None, alias="closeDate")
    owner_name: Optional[str] = Field(default=None, alias="ownerName")
    description: Optional[str] = None

    # Custom fields
    job_number: Optional[str] = Field(default=None, alias="jobNumber")
    job_status: Optional[str] = Field(default=None, alias="jobStatus")
    project_type: Optional[str] = Field(default=None, alias="projectType")
    equipment_type: Optional[str] = Field(default=None, alias="equipmentType")
    facility: Optional[str] = None
    intranet_url: Optional[str] = Field(default=None, alias="intranetUrl")

    @field_validator(
        "id",
        "name",
        "account_name",
        "stage",
        "close_date",
        "owner_name",
        "description",
        "job_number",
        "job_status",
        "project_type",
        "equipment_type",
        "facility",
        "intranet_url",
        mode="before",
    )
    def coerce_text(cls, v):
        return _to_optional_str(v)

    @field_validator("value", "probability", mode="before")
    def coerce_number(cls, v):
        return _to_optional_number(v)


class Activity(BaseModel):
    """Pipeliner activity (task, call, meeting) linked to an opportunity."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = None
    subject: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[Union[str, float]] = Field(default=None, alias="dueDate")
    related_opportunity_id: Optional[str] = Field(
        default=None, alias="relatedOpportunityId"
    )
    opportunity_id: Optional[str] = Field(default=None, alias="opportunityId")

    @field_validator(
        "id",
        "subject",
        "description",
        "related_opportunity_id",
        "opportunity_id",
        mode="before",
    )
    def coerce_text(cls, v):
        return _to_optional_str(v)

    @field_validator("due_date", mode="before")
    def coerce_due_date(cls, v):
        return _to_optional_date(v)

    @property
    def opportunity_ref(self) -> Optional[str]:
        return self.related_opportunity_id or self.opportunity_id


@dataclass
class Section:
    gid: str
    name: str


@dataclass
class ItemOutcome:
    """Result of one best-effort Asana call (section or task creation)."""

    kind: str
    name: str
    ok: bool
    gid: Optional[str] = None
    error: Optional[str] = None


@dataclass
class DeliveryOutcome:
    """What a single webhook delivery did, used for the response and audit log."""

    entity: Optional[str]
    action: Optional[str]
    handler: Optional[str] = None
    project_gid: Optional[str] = None
    project_created: bool = False
    project_updated: bool = False
    items: List[ItemOutcome] = field(default_factory=list)
    message: Optional[str] = None

    @property
    def succeeded(self) -> int:
        return sum(1 for item in self.items if item.ok)

    @property
    def failed(self) -> int:
        return sum(1 for item in self.items if not item.ok)

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["succeeded"] = self.succeeded
        result["failed"] = self.failed
        return result
