"""Interactive CLI for Sheet Mapper."""
import asyncio
from pathlib import Path
from typing import Optional

import click
from colorama import Fore, Style

from sheetmapper.cli.field_selector import SourceFieldSelector
from sheetmapper.errors import CompileError, OracleUnavailable, SheetMapperError
from sheetmapper.mapper.mapping import FieldMapping
from sheetmapper.schema.models import TargetField, TargetType
from sheetmapper.validator.mapping_validator import MappingValidator
from sheetmapper.workspace import Workspace

# Confidence below this is shown as a weak match
WEAK_MATCH = 80


class InteractiveCLI:
    """Interactive CLI interface."""

    def __init__(self, workspace: Optional[Workspace] = None):
        """Initialize CLI."""
        self.workspace = workspace or Workspace()
        self.validator = MappingValidator()
        self.last_result = None

    def print_header(self, title: str):
        """Print a section header."""
        click.echo(f"\n{Fore.CYAN}{'━' * 45}")
        click.echo(f"{Fore.CYAN}{title}")
        click.echo(f"{Fore.CYAN}{'━' * 45}{Style.RESET_ALL}\n")

    def run(self):
        """Run interactive CLI."""
        actions = {
            1: self.load_file,
            2: self.remove_file,
            3: self.edit_target_fields,
            4: self.review_mappings,
            5: self.edit_mapping,
            6: self.process,
            7: self.save_template,
            8: self.load_template,
        }

        while True:
            self.print_header("Main Menu")
            click.echo(f"Files: {len(self.workspace.registry.files)}   "
                       f"Target fields: {len(self.workspace.registry.target_fields)}\n")
            click.echo("1. Load File")
            click.echo("2. Remove File")
            click.echo("3. Edit Target Fields")
            click.echo("4. Review Mappings")
            click.echo("5. Edit Mapping")
            click.echo("6. Process & Export")
            click.echo("7. Save Template")
            click.echo("8. Load Template")
            click.echo("9. Exit\n")

            choice = click.prompt("Choose", type=int, default=1)

            if choice == 9:
                click.echo(f"{Fore.YELLOW}Goodbye!")
                break

            action = actions.get(choice)
            if action is None:
                click.echo(f"{Fore.RED}Invalid choice")
                continue

            try:
                action()
            except SheetMapperError as e:
                click.echo(f"{Fore.RED}Error: {e}")

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def load_file(self):
        """Load a source spreadsheet."""
        self.print_header("Load File")

        path = click.prompt("File path", type=str).strip()
        if not Path(path).is_file():
            click.echo(f"{Fore.RED}File not found: {path}")
            return

        try:
            loaded = self.workspace.load_file(path)
        except ValueError as e:
            click.echo(f"{Fore.RED}{e}")
            return

        click.echo(f"{Fore.GREEN}✅ Loaded {loaded.name}")
        for sheet in loaded.parsed.sheets:
            click.echo(f"   • {sheet.name} ({len(sheet.fields)} cols, {sheet.row_count} rows)")

        if not self.workspace.registry.target_fields:
            return

        if self.workspace.reconciler.mappings and click.confirm(
            "Re-run matching for unmapped target fields?", default=False
        ):
            self._rematch_unmapped()

    def remove_file(self):
        """Forget a loaded file."""
        self.print_header("Remove File")

        files = self.workspace.registry.files
        if not files:
            click.echo(f"{Fore.YELLOW}No files loaded")
            return

        for i, f in enumerate(files, 1):
            click.echo(f"{i}. {f.name} ({f.row_count} rows)")

        choice = click.prompt("Select file", type=int, default=1)
        if 1 <= choice <= len(files):
            self.workspace.remove_file(files[choice - 1].id)
            click.echo(f"{Fore.GREEN}Removed {files[choice - 1].name}")
        else:
            click.echo(f"{Fore.RED}Invalid choice")

    # ------------------------------------------------------------------
    # Target schema
    # ------------------------------------------------------------------

    def edit_target_fields(self):
        """Add, rename or delete target fields."""
        self.print_header("Edit Target Fields")
        registry = self.workspace.registry

        while True:
            self._display_targets()
            click.echo("\na. Add   r. Rename   d. Delete   ENTER. Done")
            action = click.prompt("Action", default="", type=str).strip().lower()

            if not action:
                break

            if action == "a":
                name = click.prompt("Field name", type=str).strip()
                type_name = click.prompt(
                    "Type",
                    type=click.Choice([t.value for t in TargetType]),
                    default=TargetType.TEXT.value,
                )
                description = click.prompt("Description", default="", type=str)
                registry.add_target_field(
                    name=name, data_type=TargetType(type_name), description=description
                )
            elif action in ("r", "d"):
                target = self._pick_target()
                if target is None:
                    continue
                if action == "r":
                    name = click.prompt("New name", default=target.name, type=str).strip()
                    registry.update_target_field(target.id, name=name)
                else:
                    registry.remove_target_field(target.id)
            else:
                click.echo(f"{Fore.RED}Invalid action")
                continue

            self._reconcile()

    def _display_targets(self):
        targets = self.workspace.registry.target_fields
        if not targets:
            click.echo(f"{Fore.YELLOW}No target fields yet")
            return

        for i, target in enumerate(targets, 1):
            click.echo(f"{i:2d}. {target.name:25s} [{target.data_type.value}] {target.description}")

    def _pick_target(self) -> Optional[TargetField]:
        targets = self.workspace.registry.target_fields
        if not targets:
            return None

        choice = click.prompt("Field number", type=int, default=1)
        if 1 <= choice <= len(targets):
            return targets[choice - 1]

        click.echo(f"{Fore.RED}Invalid field number: {choice}")
        return None

    # ------------------------------------------------------------------
    # Mappings
    # ------------------------------------------------------------------

    def _reconcile(self):
        result = asyncio.run(self.workspace.reconcile())

        if result.oracle_failed:
            click.echo(f"{Fore.YELLOW}⚠️  Matching unavailable, new fields left unmapped: {result.error}")
        elif result.added:
            click.echo(f"{Fore.GREEN}✓ Matched {len(result.added)} new field(s)")

    def _rematch_unmapped(self):
        reconciler = self.workspace.reconciler
        unmapped = [m.target_field_id for m in reconciler.mappings if m.is_unmapped]
        targets = [t for t in self.workspace.registry.target_fields if t.id in unmapped]
        if not targets:
            return

        answer = asyncio.run(
            self.workspace.ai_service.match_fields(self.workspace.registry.source_fields_view(), targets)
        )
        for item in answer.get("mappings", []):
            source = self.workspace.registry.find_source_field(item.get("sourceFieldId") or "")
            target_id = item.get("targetFieldId")
            if source is not None and target_id in unmapped:
                reconciler.select_source_field(target_id, source)
                click.echo(f"{Fore.GREEN}✓ {target_id} ← {source.name}")

    def review_mappings(self):
        """Show every target field with its mapping."""
        self.print_header("Review Mappings")
        reconciler = self.workspace.reconciler

        for i, target in enumerate(self.workspace.registry.target_fields, 1):
            mapping = reconciler.get(target.id)
            click.echo(f"{i:2d}. {self._describe_mapping(target, mapping)}")

        targets = self.workspace.registry.target_fields
        errors = self.validator.validate(targets, reconciler.mappings)
        warnings = self.validator.warnings(targets, reconciler.mappings)

        for error in errors:
            click.echo(f"{Fore.RED}   ❌ {error}")
        for warning in warnings[:5]:
            click.echo(f"{Fore.YELLOW}   • {warning}")

    def _describe_mapping(self, target: TargetField, mapping: Optional[FieldMapping]) -> str:
        if mapping is None:
            return f"{Fore.YELLOW}{target.name:25s} (matching pending)"

        if mapping.has_rule:
            line = f"{Fore.CYAN}{target.name:25s} ← rule: {mapping.processing_rule or '(code)'}"
        elif mapping.is_unmapped:
            line = f"{Fore.YELLOW}{target.name:25s} ✗ unmapped"
        else:
            color = Fore.GREEN if mapping.match_confidence >= WEAK_MATCH else Fore.YELLOW
            line = (
                f"{color}{target.name:25s} ← {mapping.source_field_name} "
                f"[{mapping.source_file_name}] {mapping.match_confidence}%"
            )
        return line

    def edit_mapping(self):
        """Change the source field or processing rule of one mapping."""
        self.print_header("Edit Mapping")
        self._display_targets()

        target = self._pick_target()
        if target is None:
            return

        mapping = self.workspace.reconciler.get(target.id)
        if mapping is None:
            self._reconcile()
            mapping = self.workspace.reconciler.get(target.id)

        click.echo(f"\n{self._describe_mapping(target, mapping)}")
        click.echo("\ns. Select source field   g. Generate rule   c. Write rule   x. Clear rule")
        action = click.prompt("Action", default="", type=str).strip().lower()

        if action == "s":
            selector = SourceFieldSelector(self.workspace.registry.source_fields_view())
            chosen, source = selector.prompt_selection(mapping.source_field_id)
            if chosen:
                self.workspace.reconciler.select_source_field(target.id, source)
                click.echo(f"{Fore.GREEN}✓ Updated {target.name}")
        elif action == "g":
            self._generate_rule(target)
        elif action == "c":
            self._write_rule(target)
        elif action == "x":
            self.workspace.reconciler.set_rule(target.id, None, None)
            click.echo(f"{Fore.GREEN}✓ Rule cleared")

    def _generate_rule(self, target: TargetField):
        description = click.prompt("Describe the rule", type=str)
        click.echo(f"{Fore.CYAN}Generating rule...")

        try:
            mapping = asyncio.run(self.workspace.generate_rule(target.id, description))
        except OracleUnavailable as e:
            click.echo(f"{Fore.RED}❌ Rule generation failed: {e}")
            return

        click.echo(f"{Fore.GREEN}Generated code:\n{Style.RESET_ALL}{mapping.generated_code}")
        self._check_rule(mapping.generated_code)

    def _write_rule(self, target: TargetField):
        click.echo("Enter the rule body, finish with an empty line:")
        lines = []
        while True:
            line = click.prompt("", default="", show_default=False, prompt_suffix="> ")
            if not line:
                break
            lines.append(line)

        code = "\n".join(lines)
        if self._check_rule(code):
            self.workspace.reconciler.set_rule(target.id, None, code)
            click.echo(f"{Fore.GREEN}✓ Rule saved")

    def _check_rule(self, code: str) -> bool:
        try:
            self.workspace.rule_engine.compile(code)
        except CompileError as e:
            click.echo(f"{Fore.RED}❌ Rule does not compile: {e}")
            return False
        return True

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def process(self):
        """Run the batch and optionally export it."""
        self.print_header("Process")

        if not self.workspace.registry.files:
            click.echo(f"{Fore.YELLOW}No files loaded")
            return

        result = self.workspace.process()
        self.last_result = result

        click.echo(f"{Fore.GREEN}✅ Processed {result.count} rows")
        for skipped in result.skipped_files:
            click.echo(f"{Fore.YELLOW}   Skipped file: {skipped}")

        for row in result.preview(5):
            click.echo(f"   {row}")

        if result.count and click.confirm("Export to Excel?", default=True):
            path = self.workspace.export(result.rows)
            click.echo(f"{Fore.GREEN}✅ Exported to {path}")

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def save_template(self):
        """Save target fields and mappings under a name."""
        self.print_header("Save Template")

        name = click.prompt("Template name", type=str).strip()
        if self.workspace.templates.find_by_name(name) and not click.confirm(
            f"Overwrite template '{name}'?", default=True
        ):
            return

        template = self.workspace.save_template(name)
        click.echo(f"{Fore.GREEN}✅ Saved template {template.name} ({template.id})")

    def load_template(self):
        """Replace target fields and mappings with a saved template."""
        self.print_header("Load Template")

        templates = self.workspace.templates.list()
        if not templates:
            click.echo(f"{Fore.YELLOW}No templates found")
            return

        for i, template in enumerate(templates, 1):
            click.echo(f"{i}. {template.name} ({len(template.target_fields)} fields, "
                       f"updated {template.updated_at})")

        choice = click.prompt("Select template", type=int, default=1)
        if not 1 <= choice <= len(templates):
            click.echo(f"{Fore.RED}Invalid choice")
            return

        self.workspace.apply_template(templates[choice - 1])
        self._reconcile()
        click.echo(f"{Fore.GREEN}✅ Loaded {templates[choice - 1].name}")
