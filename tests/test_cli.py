"""Tests for the command line entry point."""
import pytest
from click.testing import CliRunner

from config import AppConfig, GeminiConfig
from main import cli
from sheetmapper.schema.models import TargetField
from sheetmapper.storage.template_store import TemplateStore


@pytest.fixture
def config(tmp_path, monkeypatch):
    """Session config pointing at tmp_path, without a Gemini key."""
    config = AppConfig(
        upload_dir=str(tmp_path / "uploads"),
        output_dir=str(tmp_path / "output"),
        templates_file=str(tmp_path / "templates.json"),
        gemini=GeminiConfig(api_key=""),
    )
    monkeypatch.setattr("sheetmapper.workspace.app_config", config)
    monkeypatch.setattr("main.app_config", config)
    return config


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoice_template(config):
    return TemplateStore(config.templates_file).save(
        "发票汇总",
        [TargetField(id="t1", name="发票号码"), TargetField(id="t2", name="金额")],
        [],
    )


class TestInspectCommands:
    """parse and preview."""

    def test_parse(self, runner, invoice_xlsx):
        result = runner.invoke(cli, ["parse", str(invoice_xlsx)])

        assert result.exit_code == 0
        assert "发票 (2 rows)" in result.output
        assert "发票号 (Invoice No)" in result.output
        assert "[Float]" in result.output

    def test_parse_summary_without_model(self, runner, config, invoice_xlsx):
        result = runner.invoke(cli, ["parse", str(invoice_xlsx), "--summary"])

        assert result.exit_code == 0, result.output
        assert "Summary" in result.output
        assert "未知" in result.output

    def test_parse_unsupported(self, runner, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hello")

        result = runner.invoke(cli, ["parse", str(path)])

        assert result.exit_code == 1
        assert "Unsupported" in result.output

    def test_preview_limit(self, runner, invoice_xlsx):
        result = runner.invoke(cli, ["preview", str(invoice_xlsx), "--limit", "1"])

        assert result.exit_code == 0
        assert "INV-001" in result.output
        assert "INV-002" not in result.output


class TestProcessCommand:
    """process with a saved template."""

    def test_process_and_export(self, runner, config, invoice_template, invoice_xlsx, tmp_path):
        output = tmp_path / "result.xlsx"

        result = runner.invoke(cli, [
            "process", str(invoice_xlsx), "--template", "发票汇总", "-o", str(output),
        ])

        assert result.exit_code == 0, result.output
        assert "Processed 2 rows" in result.output
        assert "INV-001" in result.output
        assert output.exists()

    def test_unknown_template(self, runner, config, invoice_xlsx):
        result = runner.invoke(cli, ["process", str(invoice_xlsx), "--template", "nope"])

        assert result.exit_code == 1
        assert "Template not found" in result.output


class TestTemplateCommands:
    """templates group."""

    def test_list_empty(self, runner, config):
        result = runner.invoke(cli, ["templates", "list"])

        assert result.exit_code == 0
        assert "No templates found" in result.output

    def test_list_and_show(self, runner, invoice_template):
        listed = runner.invoke(cli, ["templates", "list"])
        shown = runner.invoke(cli, ["templates", "show", invoice_template.id])

        assert invoice_template.id in listed.output
        assert shown.exit_code == 0
        assert "发票号码" in shown.output
        assert "unmapped" in shown.output

    def test_delete(self, runner, config, invoice_template):
        result = runner.invoke(cli, ["templates", "delete", invoice_template.id])
        again = runner.invoke(cli, ["templates", "delete", invoice_template.id])

        assert result.exit_code == 0
        assert again.exit_code == 1
        assert TemplateStore(config.templates_file).list() == []

    def test_import_uses_headers_without_model(self, runner, config, invoice_xlsx):
        result = runner.invoke(cli, ["templates", "import", str(invoice_xlsx), "--name", "供应商A"])

        assert result.exit_code == 0, result.output
        template = TemplateStore(config.templates_file).find_by_name("供应商A")
        assert [t.name for t in template.target_fields] == ["发票号 (Invoice No)", "金额", "日期"]


class TestInteractiveCommand:
    """Interactive session."""

    def test_exit(self, runner, config):
        result = runner.invoke(cli, ["interactive"], input="9\n")

        assert result.exit_code == 0
        assert "Goodbye" in result.output
        assert "GEMINI_API_KEY not set" in result.output
