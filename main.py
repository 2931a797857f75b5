#!/usr/bin/env python3
"""Sheet Mapper - Entry point."""
import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from colorama import Fore, Style, init

from config import app_config
from sheetmapper import __version__
from sheetmapper.cli.interactive import InteractiveCLI
from sheetmapper.errors import CompileError, SheetMapperError
from sheetmapper.parser.parser_factory import ParserFactory
from sheetmapper.workspace import Workspace

# Initialize colorama
init(autoreset=True)


def print_banner():
    """Print application banner."""
    click.echo(f"{Fore.CYAN}{'=' * 44}")
    click.echo(f"{Fore.CYAN}║   {Fore.WHITE}Sheet Mapper{Fore.CYAN}                         ║")
    click.echo(f"{Fore.CYAN}║   {Fore.WHITE}Spreadsheet Field Mapping Assistant{Fore.CYAN}  ║")
    click.echo(f"{Fore.CYAN}{'=' * 44}{Style.RESET_ALL}")
    click.echo()


def fail(message: str):
    """Print an error and exit with status 1."""
    click.echo(f"{Fore.RED}❌ {message}")
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def cli(verbose):
    """Sheet Mapper - Normalize supplier spreadsheets into one schema."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--summary", is_flag=True, help="Ask the model for provider, period and currency")
def parse(file, summary):
    """Show sheets and columns of a spreadsheet."""
    try:
        parsed = ParserFactory.create_parser(file).parse(file)
    except (SheetMapperError, ValueError) as e:
        fail(str(e))

    click.echo(f"{Fore.GREEN}✅ {Path(file).name}: {len(parsed.sheets)} sheet(s), "
               f"{parsed.total_row_count} rows")

    for sheet in parsed.sheets:
        click.echo(f"\n{Fore.CYAN}{sheet.name} ({sheet.row_count} rows)")
        for parsed_field in sheet.fields:
            click.echo(
                f"   {parsed_field.column:>3s}  {parsed_field.name:25s} "
                f"[{parsed_field.data_type.value}]  {parsed_field.sample}"
            )

    if summary:
        workspace = Workspace()
        try:
            loaded = workspace.load_file(file)
            info = asyncio.run(workspace.summarize_file(loaded.id))
        except SheetMapperError as e:
            fail(str(e))

        click.echo(f"\n{Fore.CYAN}Summary")
        for key in ("provider", "period", "currency", "anomalies"):
            click.echo(f"   {key:10s} {info[key]}")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--sheet", default=None, help="Sheet name (default: first sheet)")
@click.option("--limit", default=30, show_default=True, help="Number of rows")
def preview(file, sheet, limit):
    """Show the first rows of a sheet."""
    try:
        data = ParserFactory.create_parser(file).preview(file, sheet=sheet, limit=limit)
    except (SheetMapperError, ValueError) as e:
        fail(str(e))

    click.echo(f"{Fore.CYAN}{data.sheet_name}")
    click.echo(" | ".join(h["label"] for h in data.headers))
    click.echo("-" * 60)
    for row in data.data:
        click.echo(" | ".join(str(row.get(h["key"], "")) for h in data.headers))


@cli.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--template", "template_name", required=True, help="Template to apply")
@click.option("--output", "-o", default=None, type=click.Path(dir_okay=False), help="Export to xlsx")
def process(files, template_name, output):
    """Transform FILES with a saved template."""
    print_banner()
    workspace = Workspace()

    template = workspace.templates.find_by_name(template_name)
    if template is None:
        fail(f"Template not found: {template_name}")

    try:
        for file in files:
            loaded = workspace.load_file(file)
            click.echo(f"{Fore.GREEN}✓ Loaded {loaded.name} ({loaded.row_count} rows)")

        workspace.apply_template(template)
        reconciled = asyncio.run(workspace.reconcile())
        if reconciled.added:
            click.echo(f"{Fore.YELLOW}Matched {len(reconciled.added)} field(s) missing from the template")

        result = workspace.process()
    except (SheetMapperError, ValueError) as e:
        fail(str(e))

    click.echo(f"\n{Fore.GREEN}✅ Processed {result.count} rows")
    for skipped in result.skipped_files:
        click.echo(f"{Fore.YELLOW}   Skipped file: {skipped}")

    for row in result.preview(5):
        click.echo(f"   {json.dumps(row, ensure_ascii=False, default=str)}")

    if output:
        try:
            path = workspace.export(result.rows, output)
        except SheetMapperError as e:
            fail(str(e))
        click.echo(f"{Fore.GREEN}✅ Exported to {path}")


@cli.group()
def templates():
    """Manage saved templates."""


@templates.command("list")
def list_templates():
    """List saved templates."""
    workspace = Workspace()
    saved = workspace.templates.list()

    if not saved:
        click.echo(f"{Fore.YELLOW}No templates found")
        return

    for template in saved:
        click.echo(f"{template.id:25s} {template.name:25s} "
                   f"{len(template.target_fields):3d} fields  updated {template.updated_at}")


@templates.command("show")
@click.argument("template_id")
def show_template(template_id):
    """Show target fields and mappings of a template."""
    workspace = Workspace()
    template = workspace.templates.get(template_id)
    if template is None:
        fail(f"Template not found: {template_id}")

    mappings = {m.target_field_id: m for m in template.field_mappings}
    click.echo(f"{Fore.CYAN}{template.name} ({template.id})\n")

    for target in template.target_fields:
        mapping = mappings.get(target.id)
        if mapping is None or mapping.is_unmapped:
            source = f"{Fore.YELLOW}unmapped"
        elif mapping.has_rule:
            source = f"{Fore.CYAN}rule: {mapping.processing_rule or mapping.generated_code}"
        else:
            source = f"{Fore.GREEN}{mapping.source_field_name} ({mapping.match_confidence}%)"
        click.echo(f"   {target.name:25s} [{target.data_type.value:8s}] ← {source}")


@templates.command("delete")
@click.argument("template_id")
def delete_template(template_id):
    """Delete a template."""
    workspace = Workspace()
    if not workspace.templates.delete(template_id):
        fail(f"Template not found: {template_id}")
    click.echo(f"{Fore.GREEN}✅ Deleted {template_id}")


@templates.command("import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--name", default=None, help="Template name (default: suggested)")
def import_template(file, name):
    """Create a template from the header row of a spreadsheet."""
    workspace = Workspace()

    try:
        data = ParserFactory.create_parser(file).preview(file, limit=3)
        fields, suggested = asyncio.run(
            workspace.ai_service.parse_template_fields(
                Path(file).name, data.headers, data.named_rows()
            )
        )
        template = workspace.templates.save(name or suggested, fields, [])
    except (SheetMapperError, ValueError) as e:
        fail(str(e))

    click.echo(f"{Fore.GREEN}✅ Saved template {template.name} ({template.id})")
    for target in template.target_fields:
        click.echo(f"   • {target.name} [{target.data_type.value}] {target.description}")


@cli.command("generate-rule")
@click.argument("description")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
def generate_rule(description, files):
    """Generate a processing rule from a description."""
    workspace = Workspace()

    try:
        for file in files:
            workspace.load_file(file)
        code = asyncio.run(
            workspace.ai_service.generate_rule(description, workspace.registry.source_fields_view())
        )
    except (SheetMapperError, ValueError) as e:
        fail(str(e))

    click.echo(code)

    try:
        workspace.rule_engine.compile(code)
    except CompileError as e:
        click.echo(f"{Fore.YELLOW}⚠️  Generated rule does not compile: {e}")


@cli.command()
def interactive():
    """Start an interactive mapping session."""
    print_banner()

    if not app_config.gemini.api_key:
        click.echo(f"{Fore.YELLOW}GEMINI_API_KEY not set, matching uses name similarity\n")

    InteractiveCLI().run()


if __name__ == "__main__":
    cli()
