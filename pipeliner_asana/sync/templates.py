"""
Section and task catalogs applied to every new Asana project.

A catalog is plain data: an ordered list of sections, each holding an ordered
list of (name, notes) tasks. The catalog in use is picked by name from the
built-ins below, or loaded from a JSON file with the same shape:

    {
        "name": "my_workflow",
        "sections": [
            {"name": "Planning", "tasks": [{"name": "Kickoff", "notes": "..."}]}
        ]
    }
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from pipeliner_asana.util.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TaskTemplate:
    name: str
    notes: str = ""

    def render_notes(self, context: Mapping[str, str]) -> str:
        """Fill {placeholders} from context, leaving unknown ones untouched."""
        try:
            return self.notes.format_map(_KeepMissing(context))
        except (ValueError, IndexError, AttributeError):
            # Stray braces in a custom catalog; use the text as written
            return self.notes


@dataclass(frozen=True)
class SectionTemplate:
    name: str
    tasks: Tuple[TaskTemplate, ...] = ()


@dataclass(frozen=True)
class TemplateSet:
    name: str
    sections: Tuple[SectionTemplate, ...] = field(default_factory=tuple)

    @property
    def section_names(self) -> List[str]:
        return [section.name for section in self.sections]

    @property
    def task_count(self) -> int:
        return sum(len(section.tasks) for section in self.sections)

    def iter_tasks(self) -> Iterator[Tuple[str, TaskTemplate]]:
        """Yield (section name, task) pairs in catalog order."""
        for section in self.sections:
            for task in section.tasks:
                yield section.name, task

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TemplateSet":
        if not isinstance(data, dict) or not isinstance(data.get("sections"), list):
            raise ValueError("Template catalog must be an object with a 'sections' list")

        sections = []
        for raw_section in data["sections"]:
            if not isinstance(raw_section, dict) or not raw_section.get("name"):
                raise ValueError(f"Invalid section entry: {raw_section!r}")
            tasks = []
            for raw_task in raw_section.get("tasks") or []:
                if not isinstance(raw_task, dict) or not raw_task.get("name"):
                    raise ValueError(f"Invalid task entry: {raw_task!r}")
                tasks.append(
                    TaskTemplate(
                        name=str(raw_task["name"]),
                        notes=str(raw_task.get("notes") or ""),
                    )
                )
            sections.append(
                SectionTemplate(name=str(raw_section["name"]), tasks=tuple(tasks))
            )

        return cls(name=str(data.get("name") or "custom"), sections=tuple(sections))


class _KeepMissing(dict):
    def __missing__(self, key):
        return "{" + key + "}"


INDUSTRIAL_AUTOMATION = TemplateSet(
    name="industrial_automation",
    sections=(
        SectionTemplate(
            "📋 Planning",
            (
                TaskTemplate(
                    "📊 Initial Opportunity Review",
                    "Review opportunity details:\n"
                    "- Value: ${value}\n"
                    "- Probability: {probability}%\n"
                    "- Close Date: {close_date}",
                ),
                TaskTemplate(
                    "📝 Prepare Proposal/Quote",
                    "Create detailed proposal including:\n"
                    "- Scope of work\n- Timeline\n- Pricing\n- Terms and conditions",
                ),
            ),
        ),
        SectionTemplate(
            "🔧 Engineering",
            (
                TaskTemplate(
                    "🏗️ Engineering Design",
                    "Complete engineering deliverables:\n"
                    "- Control system architecture\n- I/O list\n"
                    "- Network design\n- Panel layouts",
                ),
            ),
        ),
        SectionTemplate(
            "🏭 Manufacturing/Panel Build",
            (
                TaskTemplate(
                    "🔌 Panel Build",
                    "Manufacturing phase:\n"
                    "- Order components\n- Build panels\n"
                    "- Internal QC\n- Point-to-point checkout",
                ),
            ),
        ),
        SectionTemplate(
            "🧪 FAT/Testing",
            (
                TaskTemplate(
                    "🧪 Factory Acceptance Test (FAT)",
                    "FAT preparation and execution:\n"
                    "- Prepare FAT procedure\n- Setup test environment\n"
                    "- Execute FAT with customer\n- Address punch list items",
                ),
            ),
        ),
        SectionTemplate(
            "🚚 Shipping",
            (
                TaskTemplate(
                    "🚚 Shipping Coordination",
                    "Arrange delivery:\n"
                    "- Schedule shipping\n- Prepare packing list\n"
                    "- Coordinate site delivery\n- Track shipment",
                ),
            ),
        ),
        SectionTemplate(
            "⚙️ Commissioning",
            (
                TaskTemplate(
                    "⚙️ Site Commissioning",
                    "On-site work:\n"
                    "- Installation supervision\n- Startup and commissioning\n"
                    "- Operator training\n- Performance verification",
                ),
            ),
        ),
        SectionTemplate("✅ Complete"),
        SectionTemplate(
            "📚 Documentation",
            (
                TaskTemplate(
                    "📚 Documentation Package",
                    "Compile and deliver:\n"
                    "- As-built drawings\n- Program backups\n"
                    "- O&M manuals\n- Training materials",
                ),
            ),
        ),
    ),
)

PANEL_SHOP = TemplateSet(
    name="panel_shop",
    sections=(
        SectionTemplate(
            "📋 Quote & Order",
            (
                TaskTemplate(
                    "📊 Review Order",
                    "Confirm order details:\n"
                    "- Value: ${value}\n"
                    "- Probability: {probability}%\n"
                    "- Required By: {close_date}",
                ),
                TaskTemplate(
                    "🛒 Order Components",
                    "Purchase bill of materials:\n"
                    "- Enclosures\n- Breakers and terminals\n- Lead-time check",
                ),
            ),
        ),
        SectionTemplate(
            "🔌 Panel Build",
            (
                TaskTemplate(
                    "🔌 Build Panel",
                    "Assemble and wire:\n"
                    "- Backpanel layout\n- Wiring and labeling\n- Internal QC",
                ),
            ),
        ),
        SectionTemplate(
            "🧪 Testing",
            (
                TaskTemplate(
                    "🧪 Point-to-Point Checkout",
                    "Verify the build:\n"
                    "- Continuity checks\n- Power-up test\n- Customer witness test",
                ),
            ),
        ),
        SectionTemplate(
            "🚚 Shipping",
            (
                TaskTemplate(
                    "🚚 Ship Panel",
                    "Arrange delivery:\n"
                    "- Crate panel\n- Packing list and drawings\n- Book freight",
                ),
            ),
        ),
    ),
)

BUILTIN_TEMPLATES: Dict[str, TemplateSet] = {
    INDUSTRIAL_AUTOMATION.name: INDUSTRIAL_AUTOMATION,
    PANEL_SHOP.name: PANEL_SHOP,
}


def load_template(name: Optional[str] = None, path: Optional[str] = None) -> TemplateSet:
    """
    Resolve the catalog to use for new projects.

    Args:
        name: Built-in catalog name, ignored when path is given
        path: JSON catalog file

    Returns:
        TemplateSet: The catalog

    Raises:
        ValueError: If the name is unknown or the file is not a valid catalog
    """
    if path:
        file_path = Path(path)
        try:
            data = json.loads(file_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ValueError(f"Cannot read template catalog {file_path}: {e}") from e
        template = TemplateSet.from_dict(data)
        logger.info(
            f"Loaded template catalog '{template.name}' from {file_path} "
            f"({len(template.sections)} sections, {template.task_count} tasks)"
        )
        return template

    name = name or INDUSTRIAL_AUTOMATION.name
    try:
        return BUILTIN_TEMPLATES[name]
    except KeyError:
        raise ValueError(
            f"Unknown template catalog '{name}'. "
            f"Available: {', '.join(sorted(BUILTIN_TEMPLATES))}"
        ) from None
