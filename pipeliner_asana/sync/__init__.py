"""
Pipeliner -> Asana synchronization: opportunities become projects,
activities become tasks.
"""

from .asana_client import AsanaAPIError, AsanaClient
from .dispatcher import WebhookDispatcher, route
from .mapping_store import (
    MappingStore,
    MemoryMappingStore,
    SQLiteMappingStore,
    build_mapping_store,
)
from .models import Activity, DeliveryOutcome, ItemOutcome, Opportunity, WebhookPayload
from .templates import TemplateSet, load_template

__all__ = [
    "AsanaAPIError",
    "AsanaClient",
    "WebhookDispatcher",
    "route",
    "MappingStore",
    "MemoryMappingStore",
    "SQLiteMappingStore",
    "build_mapping_store",
    "Activity",
    "DeliveryOutcome",
    "ItemOutcome",
    "Opportunity",
    "WebhookPayload",
    "TemplateSet",
    "load_template",
]
