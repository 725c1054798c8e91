"""Tests for the section/task catalogs."""

import json

import pytest

from pipeliner_asana.sync.templates import (
    BUILTIN_TEMPLATES,
    INDUSTRIAL_AUTOMATION,
    PANEL_SHOP,
    TaskTemplate,
    TemplateSet,
    load_template,
)


class TestBuiltinCatalogs:
    def test_industrial_automation_shape(self):
        assert len(INDUSTRIAL_AUTOMATION.sections) == 8
        assert INDUSTRIAL_AUTOMATION.task_count == 8
        assert INDUSTRIAL_AUTOMATION.section_names[0] == "📋 Planning"
        assert INDUSTRIAL_AUTOMATION.section_names[-1] == "📚 Documentation"

    def test_complete_section_has_no_tasks(self):
        sections = {s.name: s for s in INDUSTRIAL_AUTOMATION.sections}
        assert sections["✅ Complete"].tasks == ()

    def test_panel_shop_shape(self):
        assert len(PANEL_SHOP.sections) == 4

    def test_iter_tasks_keeps_catalog_order(self):
        pairs = list(INDUSTRIAL_AUTOMATION.iter_tasks())
        assert pairs[0][0] == "📋 Planning"
        assert pairs[1][1].name == "📝 Prepare Proposal/Quote"
        assert pairs[-1][0] == "📚 Documentation"


class TestRenderNotes:
    def test_placeholders_are_filled(self):
        task = TaskTemplate("Review", "Value: ${value} at {probability}%")
        assert task.render_notes({"value": "60,000", "probability": "50"}) == (
            "Value: $60,000 at 50%"
        )

    def test_unknown_placeholders_are_kept(self):
        task = TaskTemplate("Review", "Owner: {owner}")
        assert task.render_notes({}) == "Owner: {owner}"

    def test_stray_braces_fall_back_to_raw_text(self):
        task = TaskTemplate("Review", "Checklist { item")
        assert task.render_notes({}) == "Checklist { item"


class TestLoadTemplate:
    def test_default_is_industrial_automation(self):
        assert load_template() is INDUSTRIAL_AUTOMATION

    def test_builtin_by_name(self):
        assert load_template("panel_shop") is PANEL_SHOP

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown template catalog"):
            load_template("does_not_exist")

    def test_file_overrides_name(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(
            json.dumps(
                {
                    "name": "service_calls",
                    "sections": [
                        {"name": "Dispatch", "tasks": [{"name": "Call customer"}]},
                        {"name": "Closed"},
                    ],
                }
            ),
            encoding="utf-8",
        )

        template = load_template("panel_shop", str(path))

        assert template.name == "service_calls"
        assert template.section_names == ["Dispatch", "Closed"]
        assert template.task_count == 1
        assert template.sections[0].tasks[0].notes == ""

    def test_invalid_file(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError, match="Cannot read template catalog"):
            load_template(path=str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValueError):
            load_template(path=str(tmp_path / "missing.json"))

    def test_invalid_shape(self):
        with pytest.raises(ValueError):
            TemplateSet.from_dict({"sections": [{"tasks": []}]})
        with pytest.raises(ValueError):
            TemplateSet.from_dict({"sections": "Planning"})


def test_builtin_registry():
    assert set(BUILTIN_TEMPLATES) == {"industrial_automation", "panel_shop"}
