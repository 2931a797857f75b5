"""Tests for the file store and template store."""
import json

import pytest

from sheetmapper.errors import MissingResource, ValidationError
from sheetmapper.mapper.mapping import FieldMapping
from sheetmapper.schema.models import TargetField, TargetType
from sheetmapper.storage.file_store import FileStore
from sheetmapper.storage.template_store import TemplateStore


class TestFileStore:
    """Loaded files."""

    def test_load_and_get(self, invoice_xlsx):
        store = FileStore()

        loaded = store.load(str(invoice_xlsx))

        assert store.get(loaded.id) is loaded
        assert loaded.name == "supplier_a.xlsx"
        assert loaded.row_count == 2
        assert [f.unique_id for f in loaded.source_fields()][0] == f"{loaded.id}/field-1-1"

    def test_upload_dir_copy_and_remove(self, tmp_path, invoice_xlsx):
        store = FileStore(str(tmp_path / "uploads"))

        loaded = store.load(str(invoice_xlsx))
        copied = tmp_path / "uploads" / f"{loaded.id}.xlsx"

        assert copied.exists()
        assert store.remove(loaded.id) is True
        assert not copied.exists()
        assert store.remove(loaded.id) is False

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "old.xls"
        path.write_bytes(b"")

        with pytest.raises(ValueError):
            FileStore().load(str(path))

    def test_preview_unknown_id(self):
        with pytest.raises(MissingResource):
            FileStore().preview("nope")

    def test_preview(self, invoice_csv):
        store = FileStore()
        loaded = store.load(str(invoice_csv))

        preview = store.preview(loaded.id, limit=1)

        assert preview.data == [{"index": 1, "col_1": "B-1", "col_2": "10"}]


@pytest.fixture
def template_store(tmp_path):
    return TemplateStore(str(tmp_path / "templates.json"))


@pytest.fixture
def template_fields():
    return [
        TargetField(id="t1", name="发票号码"),
        TargetField(id="t2", name="总费用", data_type=TargetType.CURRENCY),
    ]


class TestTemplateStore:
    """Template persistence."""

    def test_empty_store(self, template_store):
        assert template_store.list() == []
        assert template_store.get("x") is None

    def test_save_and_reload(self, template_store, template_fields):
        mappings = [FieldMapping(target_field_id="t1", source_field_id="f/1",
                                 source_field_name="发票号", match_confidence=95)]

        saved = template_store.save("发票汇总", template_fields, mappings)
        loaded = template_store.get(saved.id)

        assert saved.id.startswith("template-")
        assert loaded.name == "发票汇总"
        assert loaded.target_fields[1].data_type == TargetType.CURRENCY
        assert loaded.field_mappings[0].source_field_name == "发票号"
        assert loaded.created_at == saved.created_at

    def test_save_same_name_overwrites(self, template_store, template_fields):
        first = template_store.save("发票汇总", template_fields, [])

        second = template_store.save("发票汇总", template_fields[:1], [])

        assert len(template_store.list()) == 1
        assert second.id == first.id
        assert second.created_at == first.created_at
        assert len(template_store.get(first.id).target_fields) == 1

    def test_find_by_name_and_delete(self, template_store, template_fields):
        saved = template_store.save("A", template_fields, [])
        template_store.save("B", template_fields, [])

        assert template_store.find_by_name("A").id == saved.id
        assert template_store.delete(saved.id) is True
        assert template_store.delete(saved.id) is False
        assert [t.name for t in template_store.list()] == ["B"]

    def test_empty_name_rejected(self, template_store, template_fields):
        with pytest.raises(ValidationError):
            template_store.save("  ", template_fields, [])

    def test_file_format(self, template_store, template_fields, tmp_path):
        template_store.save("发票汇总", template_fields, [])

        data = json.loads((tmp_path / "templates.json").read_text(encoding="utf-8"))

        assert data[0]["name"] == "发票汇总"
        assert set(data[0]) == {"id", "name", "targetFields", "fieldMappings", "createdAt", "updatedAt"}
        assert data[0]["targetFields"][1]["dataType"] == "Currency"

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "templates.json"
        path.write_text("{ not json", encoding="utf-8")

        assert TemplateStore(str(path)).list() == []
