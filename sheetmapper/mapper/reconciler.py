"""
Mapping Reconciler - keeps one FieldMapping per live target field

The reconciler is the only writer of the mapping collection. It reacts to
target schema changes by:
- purging mappings of deleted target fields
- asking the matching oracle about newly added target fields only
- merging oracle answers without overwriting existing (user edited) entries
- degrading to empty mappings when the oracle fails
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from sheetmapper.mapper.mapping import FieldMapping, clamp_confidence
from sheetmapper.schema.models import SourceField, TargetField
from sheetmapper.schema.registry import SchemaRegistry

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass."""

    removed: List[str] = field(default_factory=list)
    requested: List[str] = field(default_factory=list)
    added: List[str] = field(default_factory=list)
    full_pass: bool = False
    oracle_failed: bool = False
    error: Optional[str] = None

    @property
    def changed(self) -> bool:
        return bool(self.removed or self.added)


class MappingReconciler:
    """
    Reconciles the mapping collection against a SchemaRegistry

    Usage:
    ```python
    reconciler = MappingReconciler(registry, ai_service)
    registry.add_target_field(name="发票号码")
    await reconciler.reconcile()
    reconciler.select_source_field(target_id, source_field)
    snapshot = reconciler.snapshot()
    ```

    When attached (``attach()``), every target change schedules a pass on the
    running event loop; ``settle()`` waits until no pass is pending.
    """

    def __init__(self, registry: SchemaRegistry, matcher: Any):
        """
        Args:
            registry: Schema registry to follow
            matcher: Object with ``async match_fields(source_fields, target_fields)``
        """
        self.registry = registry
        self.matcher = matcher
        self._mappings: Dict[str, FieldMapping] = {}
        # Target ids already sent to (or being sent to) the oracle
        self._processed: Set[str] = set()
        # Target ids with an oracle call outstanding
        self._in_flight: Set[str] = set()
        self._tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def mappings(self) -> List[FieldMapping]:
        """Mappings in target field order."""
        order = {tid: i for i, tid in enumerate(self.registry.target_ids())}
        return sorted(
            self._mappings.values(),
            key=lambda m: order.get(m.target_field_id, len(order)),
        )

    def get(self, target_field_id: str) -> Optional[FieldMapping]:
        return self._mappings.get(target_field_id)

    def snapshot(self) -> Tuple[FieldMapping, ...]:
        """Frozen copy of the collection for one batch run."""
        return tuple(m.copy() for m in self.mappings)

    @property
    def processed_ids(self) -> Set[str]:
        return set(self._processed)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def attach(self) -> None:
        """Schedule a reconciliation pass on every target field change."""
        self.registry.add_listener(self._on_registry_change)

    def _on_registry_change(self, registry: SchemaRegistry) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: the driver awaits reconcile() itself
            return

        task = loop.create_task(self.reconcile())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def settle(self) -> None:
        """Wait for all scheduled passes, including ones they trigger."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def reconcile(self) -> ReconcileResult:
        """Run one reconciliation pass."""
        result = ReconcileResult()
        targets = self.registry.target_fields
        live_ids = {t.id for t in targets}

        result.removed = self._purge(live_ids)

        new_fields = [
            t for t in targets
            if t.id not in self._processed and t.id not in self._mappings
        ]

        if not new_fields:
            if self._mappings or not targets:
                return result
            new_fields = [t for t in targets if t.id not in self._in_flight]
            if not new_fields:
                return result
            result.full_pass = True

        batch = new_fields
        result.requested = [t.id for t in batch]

        # Mark before awaiting so overlapping passes skip these fields
        self._processed.update(result.requested)
        self._in_flight.update(result.requested)

        source_view = self.registry.source_fields_view()
        try:
            answer = await self.matcher.match_fields(source_view, batch)
            new_mappings = self._build_mappings(answer, batch, source_view)
        except Exception as e:
            logger.warning(
                f"Field matching failed for {len(batch)} field(s), "
                f"using empty mappings: {e}"
            )
            result.oracle_failed = True
            result.error = str(e)
            new_mappings = [self._empty_mapping(t.id) for t in batch]
        finally:
            self._in_flight.difference_update(result.requested)

        result.added = self._merge(new_mappings)

        if result.added:
            logger.info(f"Mapped {len(result.added)} new target field(s)")

        return result

    def _purge(self, live_ids: Set[str]) -> List[str]:
        """Drop mappings and processed markers of deleted target fields."""
        stale = [tid for tid in self._mappings if tid not in live_ids]
        for tid in stale:
            del self._mappings[tid]

        self._processed.intersection_update(live_ids)
        return stale

    def _merge(self, new_mappings: Sequence[FieldMapping]) -> List[str]:
        """
        Merge against the current collection.

        Liveness is checked now, after the oracle answered: fields deleted in
        the meantime are dropped and existing entries are never replaced.
        """
        live_ids = set(self.registry.target_ids())
        self._purge(live_ids)

        added = []
        for mapping in new_mappings:
            tid = mapping.target_field_id
            if tid not in live_ids or tid in self._mappings:
                continue
            self._mappings[tid] = mapping
            added.append(tid)

        return added

    def _build_mappings(
        self,
        answer: Any,
        batch: Sequence[TargetField],
        source_view: Sequence[SourceField],
    ) -> List[FieldMapping]:
        """Turn an oracle answer into complete mappings for the batch."""
        if isinstance(answer, dict):
            answer = answer.get("mappings")
        if not isinstance(answer, list):
            raise ValueError(f"Malformed matching response: {type(answer).__name__}")

        sources = {s.unique_id: s for s in source_view}
        batch_ids = {t.id for t in batch}
        by_target: Dict[str, FieldMapping] = {}

        for item in answer:
            if not isinstance(item, dict):
                raise ValueError(f"Malformed mapping entry: {item!r}")

            tid = str(item.get("targetFieldId"))
            if tid not in batch_ids or tid in by_target:
                continue

            source = sources.get(item.get("sourceFieldId"))
            if source is None:
                by_target[tid] = self._empty_mapping(tid)
                continue

            by_target[tid] = FieldMapping(
                target_field_id=tid,
                source_field_id=source.unique_id,
                source_field_name=source.name,
                source_file_name=source.origin_file_name,
                match_confidence=clamp_confidence(item.get("matchConfidence", 0)),
            )

        # Fields the oracle skipped still get their one mapping
        return [by_target.get(t.id) or self._empty_mapping(t.id) for t in batch]

    @staticmethod
    def _empty_mapping(target_field_id: str) -> FieldMapping:
        return FieldMapping(target_field_id=target_field_id, source_field_id=None, match_confidence=0)

    # ------------------------------------------------------------------
    # User edits
    # ------------------------------------------------------------------

    def select_source_field(
        self, target_field_id: str, source: Optional[SourceField]
    ) -> FieldMapping:
        """Manually (re)select the source field of a mapping, or clear it."""
        current = self._require(target_field_id)

        if source is None:
            updated = current.copy(
                source_field_id=None,
                source_field_name=None,
                source_file_name=None,
                match_confidence=0,
            )
        else:
            updated = current.copy(
                source_field_id=source.unique_id,
                source_field_name=source.name,
                source_file_name=source.origin_file_name,
                match_confidence=100,
            )

        self._mappings[target_field_id] = updated
        return updated

    def set_rule(
        self,
        target_field_id: str,
        processing_rule: Optional[str],
        generated_code: Optional[str],
    ) -> FieldMapping:
        """Attach or clear a processing rule, leaving the source selection alone."""
        current = self._require(target_field_id)
        updated = current.copy(
            processing_rule=processing_rule or None,
            generated_code=generated_code or None,
        )
        self._mappings[target_field_id] = updated
        return updated

    def load_mappings(self, mappings: Sequence[FieldMapping]) -> List[str]:
        """
        Install saved mappings (e.g. from a template).

        Only live target ids are kept, first entry wins per id. Loaded ids
        count as processed so the oracle is not asked about them again.
        """
        live_ids = set(self.registry.target_ids())
        self._mappings = {}
        for mapping in mappings:
            tid = mapping.target_field_id
            if tid in live_ids and tid not in self._mappings:
                self._mappings[tid] = mapping.copy()

        self._processed = set(self._mappings)
        return list(self._mappings)

    def _require(self, target_field_id: str) -> FieldMapping:
        mapping = self._mappings.get(target_field_id)
        if mapping is None:
            raise KeyError(f"No mapping for target field: {target_field_id}")
        return mapping
