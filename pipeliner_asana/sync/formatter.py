"""
Formatting of Pipeliner opportunities into Asana project names, notes and colors.
"""

import re
from datetime import datetime
from typing import Dict, List, Optional, Union

from pipeliner_asana.util.date_utils import to_asana_date, to_iso_timestamp

from .models import Opportunity

FALLBACK_PROJECT_NAME = "New Opportunity"
NAME_SEPARATOR = " - "
NOT_AVAILABLE = "N/A"

# Asana only accepts hyphenated color names (light-blue, not light_blue)
COLOR_HIGH_VALUE = "dark-red"
COLOR_MEDIUM_HIGH_VALUE = "dark-orange"
COLOR_MEDIUM_VALUE = "light-orange"
COLOR_LOW_VALUE = "light-green"
COLOR_NO_VALUE = "light-blue"

_THOUSANDS = re.compile(r"\B(?=(\d{3})+(?!\d))")

Number = Union[int, float]


def format_number(num) -> str:
    """
    Insert thousands separators into the integer part of a number.

    Integral floats are shown without a fraction (60000.0 -> "60,000").
    Anything that is not a number is stringified unchanged apart from grouping.
    """
    if isinstance(num, float) and num.is_integer():
        num = int(num)
    whole, dot, fraction = str(num).partition(".")
    return f"{_THOUSANDS.sub(',', whole)}{dot}{fraction}"


def format_date(value) -> Optional[str]:
    """Date for Asana's due_on field (YYYY-MM-DD), or None."""
    return to_asana_date(value)


def expected_revenue(opportunity: Opportunity) -> Number:
    revenue = (opportunity.value or 0) * (opportunity.probability or 0) / 100
    return round(revenue, 2)


def format_project_name(opportunity: Opportunity) -> str:
    parts: List[str] = []

    if opportunity.job_number:
        parts.append(f"[{opportunity.job_number}]")

    if opportunity.account_name:
        parts.append(opportunity.account_name)

    if opportunity.name:
        parts.append(opportunity.name)

    if opportunity.value and opportunity.value > 0:
        parts.append(f"(${format_number(opportunity.value)})")

    return NAME_SEPARATOR.join(parts) or FALLBACK_PROJECT_NAME


def format_project_notes(
    opportunity: Opportunity,
    pipeliner_base_url: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Render the labeled plain-text block stored as the Asana project notes.

    Fixed labels are always present; missing values show a placeholder.

    Args:
        opportunity: Opportunity from the webhook
        pipeliner_base_url: Base URL used to link back to the opportunity
        now: Sync timestamp, defaults to the current time

    Returns:
        str: Multi-line notes text
    """
    o = opportunity
    notes: List[str] = []

    notes.append("=== PIPELINER OPPORTUNITY DETAILS ===\n")
    notes.append(f"Pipeliner ID: {o.id or NOT_AVAILABLE}")
    if o.job_number:
        notes.append(f"Job Number: {o.job_number}")
    if o.job_status:
        notes.append(f"Job Status: {o.job_status}")
    notes.append(f"Opportunity Name: {o.name or NOT_AVAILABLE}")
    notes.append(f"Account: {o.account_name or NOT_AVAILABLE}")
    notes.append(f"Value: ${format_number(o.value or 0)}")
    notes.append(f"Probability: {format_number(o.probability or 0)}%")
    notes.append(f"Expected Revenue: ${format_number(expected_revenue(o))}")
    notes.append(f"Stage: {o.stage or NOT_AVAILABLE}")
    notes.append(f"Close Date: {o.close_date or 'Not set'}")
    notes.append(f"Owner: {o.owner_name or NOT_AVAILABLE}")

    if o.project_type:
        notes.append(f"Project Type: {o.project_type}")
    if o.equipment_type:
        notes.append(f"Equipment Type: {o.equipment_type}")
    if o.facility:
        notes.append(f"Facility: {o.facility}")

    notes.append(
        f"\n=== DESCRIPTION ===\n{o.description or 'No description provided'}"
    )

    links: List[str] = []
    if o.intranet_url:
        links.append(f"Intranet: {o.intranet_url}")
    if o.id and pipeliner_base_url:
        links.append(f"View in Pipeliner: {pipeliner_base_url.rstrip('/')}/{o.id}")
    if links:
        notes.append("\n=== LINKS ===")
        notes.extend(links)

    notes.append("\n=== SYNC INFO ===")
    notes.append(f"Created from Pipeliner webhook: {to_iso_timestamp(now)}")

    return "\n".join(notes)


def get_project_color(opportunity: Opportunity) -> str:
    value = opportunity.value
    if value:
        if value > 100000:
            return COLOR_HIGH_VALUE
        if value > 50000:
            return COLOR_MEDIUM_HIGH_VALUE
        if value > 25000:
            return COLOR_MEDIUM_VALUE
        return COLOR_LOW_VALUE

    return COLOR_NO_VALUE


def template_context(opportunity: Opportunity) -> Dict[str, str]:
    """Placeholder values available to task-template notes."""
    return {
        "value": format_number(opportunity.value or 0),
        "probability": format_number(opportunity.probability or 0),
        "close_date": opportunity.close_date or "TBD",
        "name": opportunity.name or NOT_AVAILABLE,
        "account": opportunity.account_name or NOT_AVAILABLE,
    }
