"""Tests for the schema registry and schema models."""
import pytest

from sheetmapper.schema.models import (
    LoadedFile,
    ParsedField,
    ParsedFile,
    SheetInfo,
    SourceType,
    TargetField,
    TargetType,
)
from sheetmapper.schema.registry import SchemaRegistry


@pytest.fixture
def registry():
    return SchemaRegistry()


@pytest.fixture
def loaded_file():
    parsed = ParsedFile(
        sheets=[
            SheetInfo(
                name="发票",
                fields=[
                    ParsedField(id="field-1-1", name="发票号", data_type=SourceType.TEXT,
                                sample="INV-001", column="A"),
                    ParsedField(id="field-1-2", name="金额", data_type=SourceType.INTEGER,
                                sample="100", column="B"),
                ],
                row_count=2,
            ),
            SheetInfo(
                name="汇总",
                fields=[
                    ParsedField(id="field-2-1", name="合计", data_type=SourceType.FLOAT,
                                sample="350.5", column="A"),
                ],
                row_count=1,
            ),
        ],
        total_row_count=3,
    )
    return LoadedFile(id="file-a", name="a.xlsx", path="/tmp/a.xlsx", parsed=parsed)


class TestTargetFields:
    """Target schema editing."""

    def test_add_target_field_defaults(self, registry):
        """New fields are blank Text fields with a generated id."""
        target = registry.add_target_field()

        assert target.id.startswith("target-")
        assert target.name == ""
        assert target.data_type == TargetType.TEXT
        assert target.icon == "text_fields"
        assert registry.target_ids() == [target.id]

    def test_add_target_field_ids_unique(self, registry):
        """Fields added within the same millisecond still get distinct ids."""
        ids = {registry.add_target_field(name=f"f{i}").id for i in range(20)}

        assert len(ids) == 20

    def test_remove_target_field(self, registry):
        first = registry.add_target_field(name="发票号码")
        second = registry.add_target_field(name="金额")

        assert registry.remove_target_field(first.id) is True
        assert registry.remove_target_field(first.id) is False
        assert registry.target_ids() == [second.id]

    def test_update_target_field(self, registry):
        target = registry.add_target_field(name="金额")

        updated = registry.update_target_field(target.id, name="总费用", data_type="Currency")

        assert updated.name == "总费用"
        assert updated.data_type == TargetType.CURRENCY
        assert registry.get_target_field(target.id).name == "总费用"

    def test_update_unknown_field_is_noop(self, registry):
        assert registry.update_target_field("missing", name="x") is None

    def test_update_rejects_id_change(self, registry):
        target = registry.add_target_field(name="金额")

        with pytest.raises(ValueError):
            registry.update_target_field(target.id, id="other")

    def test_import_from_template_replaces_list(self, registry):
        registry.add_target_field(name="old")
        fields = [TargetField(id="t1", name="发票号码"), TargetField(id="t2", name="金额")]

        registry.import_from_template(fields)

        assert registry.target_ids() == ["t1", "t2"]

    def test_import_from_template_rejects_duplicate_ids(self, registry):
        with pytest.raises(ValueError):
            registry.import_from_template([TargetField(id="t1"), TargetField(id="t1")])

    def test_target_fields_returns_copy(self, registry):
        registry.add_target_field(name="a")
        registry.target_fields.clear()

        assert len(registry.target_fields) == 1

    def test_listeners_notified_on_change(self, registry):
        calls = []
        registry.add_listener(lambda r: calls.append(r.target_ids()))

        target = registry.add_target_field(name="a")
        registry.update_target_field(target.id, name="b")
        registry.remove_target_field(target.id)

        assert len(calls) == 3
        assert calls[-1] == []


class TestSourceView:
    """Flattened source field view."""

    def test_source_fields_view_flattens_sheets(self, registry, loaded_file):
        registry.add_file(loaded_file)

        view = registry.source_fields_view()

        assert [s.unique_id for s in view] == [
            "file-a/field-1-1",
            "file-a/field-1-2",
            "file-a/field-2-1",
        ]
        assert view[2].origin_sheet_name == "汇总"
        assert view[0].origin_file_name == "a.xlsx"
        assert view[1].sample_value == "100"

    def test_source_view_recomputed_after_removal(self, registry, loaded_file):
        registry.add_file(loaded_file)
        assert len(registry.source_fields_view()) == 3

        registry.remove_file(loaded_file.id)

        assert registry.source_fields_view() == ()

    def test_find_source_field(self, registry, loaded_file):
        registry.add_file(loaded_file)

        found = registry.find_source_field("file-a/field-1-2")

        assert found.name == "金额"
        assert registry.find_source_field("nope") is None


class TestModels:
    """Dictionary conversion of schema models."""

    def test_target_field_accepts_legacy_type_key(self):
        target = TargetField.from_dict({"id": "t1", "name": "日期", "type": "Date"})

        assert target.data_type == TargetType.DATE

    def test_target_type_parse_is_lenient(self):
        assert TargetType.parse("String") == TargetType.TEXT
        assert TargetType.parse("number") == TargetType.NUMBER
        assert TargetType.parse("whatever") == TargetType.TEXT

    def test_target_field_to_dict(self):
        data = TargetField(id="t1", name="金额", data_type=TargetType.CURRENCY).to_dict()

        assert data["dataType"] == "Currency"
        assert data["icon"] == "text_fields"
