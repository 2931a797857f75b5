"""Heuristic matching engine used when the matching oracle is unavailable."""
import re
from typing import List, Optional, Dict, Any, Sequence, Tuple
from difflib import SequenceMatcher

from sheetmapper.schema.models import SourceField, TargetField


class HeuristicMatcher:
    """Match target fields to source fields by name similarity."""

    # Score needed before a source field is proposed at all
    ACCEPT_THRESHOLD = 0.3

    # Headers suppliers use for the same concept
    COMMON_NAME_MAPPINGS = {
        "invoice no": "发票号码",
        "invoice number": "发票号码",
        "发票号": "发票号码",
        "amount": "金额",
        "total": "总费用",
        "total amount": "总费用",
        "remark": "备注",
        "remarks": "备注",
        "note": "备注",
        "date": "日期",
        "invoice date": "日期",
        "customer": "客户",
        "client": "客户",
        "quantity": "数量",
        "qty": "数量",
    }

    def match(
        self,
        source_fields: Sequence[SourceField],
        target_fields: Sequence[TargetField],
    ) -> List[Dict[str, Any]]:
        """
        Generate mapping suggestions, one per target field.

        Args:
            source_fields: Flattened source field view
            target_fields: Target fields to map

        Returns:
            List of {targetFieldId, sourceFieldId, matchConfidence}
        """
        mappings = []

        for target in target_fields:
            best, score = self._find_source_field(target.name, source_fields)
            accepted = best is not None and score > self.ACCEPT_THRESHOLD

            mappings.append({
                "targetFieldId": target.id,
                "sourceFieldId": best.unique_id if accepted else None,
                "matchConfidence": int(round(score * 100)) if accepted else 0,
            })

        return mappings

    def _find_source_field(
        self, target_name: str, source_fields: Sequence[SourceField]
    ) -> Tuple[Optional[SourceField], float]:
        """Find best matching source field and its score."""
        best_match = None
        best_score = 0.0

        for source in source_fields:
            score = self.similarity(target_name, source.name)
            if score > best_score:
                best_score = score
                best_match = source

        return best_match, best_score

    def similarity(self, target_name: str, source_name: str) -> float:
        """Similarity score in [0, 1] between a target and a source header."""
        target = self._normalize(target_name)
        source = self._normalize(source_name)

        if not target or not source:
            return 0.0

        # Exact match
        if target == source:
            return 1.0

        # Common mapping, also checked on the parts of "发票号 (Invoice No)"
        for part in [source] + self._split_parts(source):
            if self.COMMON_NAME_MAPPINGS.get(part) == target:
                return 0.95

        # Containment
        if target in source or source in target:
            shorter, longer = sorted((target, source), key=len)
            return max(0.8, len(shorter) / len(longer))

        # Fuzzy match
        ratio = SequenceMatcher(None, target, source).ratio()
        return max(ratio, self._jaccard(target, source))

    @staticmethod
    def _normalize(name: str) -> str:
        return re.sub(r"\s+", " ", str(name or "")).strip().lower()

    @staticmethod
    def _split_parts(name: str) -> List[str]:
        """Split "发票号 (Invoice No)" into ["发票号", "invoice no"]."""
        parts = re.split(r"[()（）/|]", name)
        return [p.strip() for p in parts if p.strip()]

    @staticmethod
    def _jaccard(left: str, right: str) -> float:
        """Character-set similarity."""
        set1 = set(left)
        set2 = set(right)
        union = set1 | set2
        return len(set1 & set2) / len(union) if union else 0.0
