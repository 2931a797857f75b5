"""Functions callable from processing rules."""
import re
from datetime import date, datetime
from typing import Any, Callable, Dict, List

# Upper bound for widths passed to padding helpers
MAX_PAD_WIDTH = 10000

DATE_FORMATS = [
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y/%m/%d",
    "%Y.%m.%d",
    "%Y%m%d",
    "%d/%m/%Y",
    "%Y年%m月%d日",
]


class FunctionRegistry:
    """Registry of the functions a rule may call, nothing else is reachable."""

    def __init__(self):
        """Initialize registry."""
        self.functions: Dict[str, Callable] = {
            "str": self._text,
            "int": int,
            "float": float,
            "bool": bool,
            "len": len,
            "abs": abs,
            "round": round,
            "min": min,
            "max": max,
            "sum": sum,
            "sorted": sorted,
            "number": self._number,
            "text": self._text,
            "trim": lambda x: self._text(x).strip(),
            "upper": lambda x: self._text(x).upper(),
            "lower": lambda x: self._text(x).lower(),
            "pad": self._pad,
            "date_format": self._date_format,
            "contains": lambda x, part: str(part) in self._text(x),
        }

    def get(self, name: str) -> Callable:
        """Get function by name."""
        return self.functions.get(name)

    def register(self, name: str, func: Callable) -> None:
        """Expose an extra function to rules."""
        self.functions[name] = func

    def names(self) -> List[str]:
        return sorted(self.functions)

    @staticmethod
    def _number(value: Any, default: Any = 0) -> Any:
        """Parse a cell into a number; blanks give ``default``."""
        if value is None or isinstance(value, bool):
            return default if value is None else int(value)

        if isinstance(value, (int, float)):
            return value

        clean = re.sub(r"[\s,￥¥$€£%]", "", str(value))
        if not clean:
            return default

        number = float(clean)
        return int(number) if number.is_integer() and "." not in clean else number

    @staticmethod
    def _text(value: Any) -> str:
        """String form of a cell, integral floats without ``.0``."""
        if value is None:
            return ""
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)

    @classmethod
    def _pad(cls, value: Any, width: int, fill: str = "0") -> str:
        """Left-pad to ``width``."""
        if width > MAX_PAD_WIDTH:
            raise ValueError(f"pad width too large: {width}")
        return cls._text(value).rjust(int(width), str(fill)[:1] or "0")

    @classmethod
    def _date_format(cls, value: Any, fmt: str = "%Y-%m-%d") -> str:
        """Reformat a date cell."""
        if isinstance(value, (date, datetime)):
            return value.strftime(fmt)

        raw = cls._text(value).strip()
        if not raw:
            return ""

        for candidate in DATE_FORMATS:
            try:
                return datetime.strptime(raw, candidate).strftime(fmt)
            except ValueError:
                continue

        raise ValueError(f"unrecognized date: {raw}")
