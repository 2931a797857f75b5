"""
AI Service - oracle operations backed by Gemini

Every blocking HTTP call runs in a worker thread so the reconciler's event
loop keeps serving other passes while a prompt is in flight.
"""

import asyncio
import json
import logging
import re
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sheetmapper.api.gemini_client import GeminiClient
from sheetmapper.errors import OracleUnavailable, ValidationError
from sheetmapper.mapper.heuristic import HeuristicMatcher
from sheetmapper.schema.models import DEFAULT_ICON, SourceField, TargetField, TargetType
from sheetmapper.transformer.registry import FunctionRegistry

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_NAME = "新模板"
UNKNOWN = "未知"

TEMPLATE_ICONS = [
    "tag", "numbers", "calendar_today", "payments", "text_fields",
    "person", "location_on", "receipt_long", "scale", "local_shipping",
]

CODE_FENCE = re.compile(r"^```[a-zA-Z]*\n?|\n?```$")

MATCH_PROMPT = """你是一个数据字段映射专家。请分析以下源字段和目标字段，为每个目标字段推荐最匹配的源字段。

源字段列表：
{source_fields}

目标字段列表：
{target_fields}

请返回 JSON 格式的映射结果，格式如下：
{{
  "mappings": [
    {{
      "targetFieldId": "目标字段ID",
      "sourceFieldId": "匹配的源字段ID或null",
      "matchConfidence": 0-100的匹配度
    }}
  ]
}}

仅返回 JSON，不要包含其他内容。"""

RULE_PROMPT = """你是一个 Python 数据处理专家。请根据用户需求生成数据转换规则的函数体。

可用的源字段及示例值：
    {examples}

可用的函数：{functions}

用户需求: "{description}"

要求：
1. 只返回函数体代码，不要 def 声明
2. 变量 row 包含源数据的一行，通过 row['字段名'] 获取值，缺失的字段为空字符串
3. 代码必须使用 return 语句返回处理后的值
4. 只能使用上面列出的函数以及字符串方法，不能 import，不能使用 lambda 或循环
5. 需要四则运算时，先用 number() 转换为数字
6. 只返回代码，不要 markdown 代码块标记

示例输出（仅函数体）：
value = number(row['金额'])
return round(value * 1.13, 2)"""

TEMPLATE_PROMPT = """你是一个数据分析专家。请分析以下 Excel 模板文件的表头和样本数据，提取出目标字段定义。

文件名：{file_name}

表头列表：
{headers}

样本数据（前3行）：
{samples}

请分析每个表头字段，推断其：
1. 字段名称（使用中文）
2. 数据类型（Text/Number/Date/Currency 四选一）
3. 字段描述（简短说明该字段的用途）
4. 合适的图标（从以下选项中选择：{icons}）

请返回 JSON 格式：
{{
  "fields": [
    {{
      "name": "字段名称",
      "type": "数据类型",
      "description": "字段描述",
      "icon": "图标名称"
    }}
  ],
  "templateName": "推荐的模板名称（基于文件名或内容推断）"
}}

仅返回 JSON，不要包含其他内容。"""

SUMMARY_PROMPT = """分析以下 Excel 文件数据，生成结构化摘要。

文件信息：
{file_info}

数据样本（前 5 行）：
{samples}

请返回 JSON 格式：
{{
  "provider": "推断的供应商/数据来源",
  "period": "推断的数据时间范围",
  "currency": "货币类型",
  "anomalies": "发现的异常或需要注意的点"
}}

仅返回 JSON。"""


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, indent=2, default=str)


class AiService:
    """
    Matching and rule-generation oracle

    Usage:
    ```python
    service = AiService(GeminiClient(app_config.gemini))
    answer = await service.match_fields(registry.source_fields_view(), targets)
    code = await service.generate_rule("金额乘以1.13", source_fields)
    ```
    """

    def __init__(
        self,
        client: GeminiClient,
        heuristic_fallback: bool = True,
        matcher: Optional[HeuristicMatcher] = None,
        functions: Optional[FunctionRegistry] = None,
    ):
        """
        Args:
            client: Gemini client
            heuristic_fallback: Answer matching requests by name similarity
                when the model is unavailable
            matcher: Similarity matcher used as fallback
            functions: Function registry advertised to rule generation
        """
        self.client = client
        self.heuristic_fallback = heuristic_fallback
        self.matcher = matcher or HeuristicMatcher()
        self.functions = functions or FunctionRegistry()

    async def match_fields(
        self,
        source_fields: Sequence[SourceField],
        target_fields: Sequence[TargetField],
    ) -> Dict[str, Any]:
        """
        Propose a source field for each target field.

        Returns:
            {"mappings": [{targetFieldId, sourceFieldId, matchConfidence}]}

        Raises:
            OracleUnavailable: Model failed and heuristic fallback is disabled
        """
        prompt = MATCH_PROMPT.format(
            source_fields=_dump([s.to_dict() for s in source_fields]),
            target_fields=_dump([
                {"id": t.id, "name": t.name, "type": t.data_type.value, "description": t.description}
                for t in target_fields
            ]),
        )

        try:
            answer = await asyncio.to_thread(self.client.generate_json, prompt)
            if not isinstance(answer.get("mappings"), list):
                raise OracleUnavailable("Matching answer has no mappings list")
            return answer
        except OracleUnavailable as e:
            if not self.heuristic_fallback:
                raise
            logger.warning(f"AI field matching failed, using name similarity: {e}")
            return {"mappings": self.matcher.match(source_fields, target_fields)}

    async def generate_rule(
        self,
        description: str,
        source_fields: Sequence[SourceField],
    ) -> str:
        """
        Turn a natural-language description into a rule body.

        Raises:
            ValidationError: Empty description
            OracleUnavailable: Model failed
        """
        if not description or not description.strip():
            raise ValidationError("Rule description is empty")

        examples = "\n    ".join(
            f"# row['{s.name}'] (示例值: '{s.sample_value or ''}')" for s in source_fields
        )
        prompt = RULE_PROMPT.format(
            examples=examples,
            functions=", ".join(self.functions.names()),
            description=description.strip(),
        )

        text = await asyncio.to_thread(self.client.generate, prompt)
        code = strip_code_fences(text)
        if not code:
            raise OracleUnavailable("Rule generation returned no code")

        logger.info(f"Generated rule for: {description.strip()}")
        return code

    async def parse_template_fields(
        self,
        file_name: str,
        headers: Sequence[Any],
        sample_rows: Sequence[Dict[str, Any]] = (),
    ) -> Tuple[List[TargetField], str]:
        """
        Derive target fields from a template spreadsheet.

        Falls back to the header labels as Text fields.

        Returns:
            (target fields, suggested template name)
        """
        labels = [_header_label(h) for h in headers]
        default_name = Path(file_name).stem if file_name else DEFAULT_TEMPLATE_NAME
        default_name = default_name or DEFAULT_TEMPLATE_NAME
        stamp = int(time.time() * 1000)

        prompt = TEMPLATE_PROMPT.format(
            file_name=file_name,
            headers=_dump(labels),
            samples=_dump(list(sample_rows)[:3]),
            icons=", ".join(TEMPLATE_ICONS),
        )

        try:
            answer = await asyncio.to_thread(self.client.generate_json, prompt)
            raw_fields = answer.get("fields") or []
            if not isinstance(raw_fields, list):
                raise OracleUnavailable("Template answer has no fields list")

            fields = [
                TargetField(
                    id=f"target-{stamp}-{idx}",
                    name=str(item.get("name") or ""),
                    data_type=TargetType.parse(item.get("type")),
                    description=str(item.get("description") or ""),
                    icon=item.get("icon") if item.get("icon") in TEMPLATE_ICONS else DEFAULT_ICON,
                )
                for idx, item in enumerate(raw_fields)
                if isinstance(item, dict)
            ]
            return fields, str(answer.get("templateName") or default_name)

        except OracleUnavailable as e:
            logger.warning(f"Template parsing failed, using headers as fields: {e}")
            fields = [
                TargetField(id=f"target-{stamp}-{idx}", name=label)
                for idx, label in enumerate(labels)
            ]
            return fields, default_name

    async def summarize_file(
        self,
        file_info: Dict[str, Any],
        sample_rows: Sequence[Dict[str, Any]] = (),
    ) -> Dict[str, str]:
        """Describe a loaded file: provider, period, currency, anomalies."""
        prompt = SUMMARY_PROMPT.format(
            file_info=_dump(file_info),
            samples=_dump(list(sample_rows)[:5]),
        )

        try:
            answer = await asyncio.to_thread(self.client.generate_json, prompt)
        except OracleUnavailable as e:
            logger.warning(f"File summary failed: {e}")
            return {
                "provider": UNKNOWN,
                "period": UNKNOWN,
                "currency": UNKNOWN,
                "anomalies": "无法自动分析，请手动检查",
            }

        return {
            key: str(answer.get(key) or UNKNOWN)
            for key in ("provider", "period", "currency", "anomalies")
        }


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code block, if any."""
    return CODE_FENCE.sub("", (text or "").strip()).strip()


def _header_label(header: Any) -> str:
    if isinstance(header, dict):
        return str(header.get("label") or header.get("key") or "")
    return "" if header is None else str(header)
