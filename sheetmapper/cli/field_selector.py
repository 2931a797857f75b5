"""Interactive source field selection."""
from typing import List, Optional, Sequence, Tuple

import click
from colorama import Fore

from sheetmapper.schema.models import SourceField

ALL_SHEETS = "all"


class SourceFieldSelector:
    """Pick the source field of one mapping from all loaded files."""

    def __init__(self, source_fields: Sequence[SourceField]):
        """Initialize selector."""
        self.source_fields = list(source_fields)

    def sheets(self) -> List[str]:
        """Sheet names in load order, without duplicates."""
        names = []
        for source in self.source_fields:
            if source.origin_sheet_name not in names:
                names.append(source.origin_sheet_name)
        return names

    def filter_fields(self, search: str = "", sheet: str = ALL_SHEETS) -> List[SourceField]:
        """Fields whose name or file name contains ``search``, on ``sheet``."""
        term = (search or "").strip().lower()
        return [
            source for source in self.source_fields
            if (not term or term in source.name.lower() or term in source.origin_file_name.lower())
            and (sheet == ALL_SHEETS or source.origin_sheet_name == sheet)
        ]

    def prompt_selection(self, current_id: Optional[str] = None) -> Tuple[bool, Optional[SourceField]]:
        """
        Prompt user to choose a field.

        Returns:
            (chosen, field): ``chosen`` is False when the user backed out;
            ``field`` is None when the mapping should have no source
        """
        if not self.source_fields:
            click.echo(f"{Fore.YELLOW}No source fields loaded")
            return False, None

        search = ""
        while True:
            candidates = self.filter_fields(search)
            self._display(candidates, current_id)

            click.echo(f"\n{Fore.YELLOW}Enter a number, '0' for no source field,")
            click.echo(f"{Fore.YELLOW}'/text' to search, or press ENTER to cancel\n")

            selection = click.prompt("Select source field", default="", type=str).strip()

            if not selection:
                return False, None

            if selection.startswith("/"):
                search = selection[1:]
                continue

            if selection == "0":
                return True, None

            try:
                index = int(selection) - 1
            except ValueError:
                click.echo(f"{Fore.RED}Invalid input. Please enter a number.")
                continue

            if index < 0 or index >= len(candidates):
                click.echo(f"{Fore.RED}Invalid field number: {selection}")
                continue

            return True, candidates[index]

    def _display(self, candidates: Sequence[SourceField], current_id: Optional[str]):
        if not candidates:
            click.echo(f"\n{Fore.YELLOW}No matching fields")
            return

        click.echo(f"\n{Fore.CYAN}Source fields:")
        click.echo(f"{Fore.CYAN}{'=' * 60}\n")
        marker = "○" if current_id else "●"
        click.echo(f" 0. {marker} (no source field)")

        for i, source in enumerate(candidates, 1):
            marker = "●" if source.unique_id == current_id else " "
            sample = f"  e.g. {source.sample_value}" if source.sample_value else ""
            click.echo(
                f"{i:2d}. {marker} {source.name:25s} "
                f"[{source.origin_file_name} / {source.origin_sheet_name}]{sample}"
            )
