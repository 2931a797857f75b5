"""
Workspace - one mapping session

Wires the schema registry, mapping reconciler, oracles, rule engine, batch
transformer, template store and exporter together for the CLI drivers.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from config import AppConfig, app_config
from sheetmapper.api.ai_service import AiService
from sheetmapper.api.gemini_client import GeminiClient
from sheetmapper.errors import MissingResource, OracleUnavailable
from sheetmapper.exporter.excel_exporter import ExcelExporter
from sheetmapper.mapper.mapping import FieldMapping
from sheetmapper.mapper.reconciler import MappingReconciler, ReconcileResult
from sheetmapper.schema.models import LoadedFile
from sheetmapper.schema.registry import SchemaRegistry
from sheetmapper.storage.file_store import FileStore
from sheetmapper.storage.template_store import Template, TemplateStore
from sheetmapper.transformer.batch import BatchResult, BatchTransformer
from sheetmapper.transformer.rule_engine import RuleEngine

logger = logging.getLogger(__name__)


class Workspace:
    """
    Loaded files, target schema and mappings of one session

    Usage:
    ```python
    workspace = Workspace()
    workspace.load_file("supplier_a.xlsx")
    workspace.apply_template(workspace.templates.find_by_name("发票汇总"))
    await workspace.reconcile()
    result = workspace.process()
    workspace.export(result.rows)
    ```
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        ai_service: Optional[Any] = None,
        file_store: Optional[FileStore] = None,
        template_store: Optional[TemplateStore] = None,
    ):
        self.config = config or app_config
        self.registry = SchemaRegistry()
        self.file_store = file_store or FileStore(self.config.upload_dir)
        self.ai_service = ai_service or AiService(
            GeminiClient(self.config.gemini),
            heuristic_fallback=self.config.gemini.heuristic_fallback,
        )
        self.reconciler = MappingReconciler(self.registry, self.ai_service)
        self.rule_engine = RuleEngine()
        self.transformer = BatchTransformer(
            self.file_store,
            self.rule_engine,
            max_rows=self.config.max_rows_per_file,
            sequence_column=self.config.sequence_column,
        )
        self.templates = template_store or TemplateStore(self.config.templates_file)
        self.exporter = ExcelExporter()

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def load_file(self, path: str, name: Optional[str] = None) -> LoadedFile:
        loaded = self.file_store.load(path, name)
        self.registry.add_file(loaded)
        return loaded

    def remove_file(self, file_id: str) -> bool:
        self.registry.remove_file(file_id)
        return self.file_store.remove(file_id)

    async def summarize_file(self, file_id: str) -> Dict[str, str]:
        """Provider, period, currency and anomalies of a loaded file."""
        loaded = self.registry.get_file(file_id)
        if loaded is None:
            raise MissingResource(f"Unknown file id: {file_id}")

        preview = self.file_store.preview(file_id, limit=5)
        file_info = {
            "fileName": loaded.name,
            "rowCount": loaded.row_count,
            "sheets": [
                {"name": sheet.name, "columns": [f.name for f in sheet.fields]}
                for sheet in loaded.parsed.sheets
            ],
        }
        return await self.ai_service.summarize_file(file_info, preview.named_rows())

    # ------------------------------------------------------------------
    # Mappings
    # ------------------------------------------------------------------

    def apply_template(self, template: Template) -> None:
        """Replace the target schema and mappings with a saved template."""
        self.registry.import_from_template(template.target_fields)
        kept = self.reconciler.load_mappings(template.field_mappings)
        logger.info(
            f"Applied template {template.name}: {len(template.target_fields)} fields, "
            f"{len(kept)} saved mappings"
        )

    async def reconcile(self) -> ReconcileResult:
        """Run a pass now, after any already scheduled ones."""
        await self.reconciler.settle()
        return await self.reconciler.reconcile()

    async def generate_rule(self, target_field_id: str, description: str) -> FieldMapping:
        """
        Ask the oracle for a rule and attach it to a mapping.

        The description is stored even when generation fails. Generated code
        is stored as is; compile problems surface when the batch runs.

        Raises:
            OracleUnavailable: Rule could not be generated
        """
        current = self.reconciler.get(target_field_id)
        if current is None:
            raise KeyError(f"No mapping for target field: {target_field_id}")

        try:
            code = await self.ai_service.generate_rule(description, self.registry.source_fields_view())
        except OracleUnavailable:
            self.reconciler.set_rule(target_field_id, description, current.generated_code)
            raise

        return self.reconciler.set_rule(target_field_id, description, code)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def process(self, file_ids: Optional[Sequence[str]] = None) -> BatchResult:
        """Transform the given files (default: all loaded) with the current mappings."""
        if file_ids is None:
            file_ids = [f.id for f in self.registry.files]

        return self.transformer.run(
            list(file_ids),
            self.reconciler.snapshot(),
            self.registry.target_fields,
        )

    def export(self, rows: List[Dict[str, Any]], output_file: Optional[str] = None) -> Path:
        if output_file is None:
            stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            output_file = Path(self.config.output_dir) / f"processed_{stamp}.xlsx"
        return self.exporter.export(rows, Path(output_file))

    def save_template(self, name: str) -> Template:
        return self.templates.save(
            name,
            self.registry.target_fields,
            list(self.reconciler.snapshot()),
        )
