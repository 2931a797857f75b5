"""Configuração da aplicação."""
import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass
class GeminiConfig:
    """Configuração da API Gemini."""

    base_url: str = "https://generativelanguage.googleapis.com"
    api_key: str = ""  # Lê de GEMINI_API_KEY
    model: str = "gemini-2.0-flash"
    timeout: int = 60
    heuristic_fallback: bool = True

    @classmethod
    def from_env(cls) -> "GeminiConfig":
        """Carrega config de variáveis de ambiente."""
        return cls(
            base_url=os.getenv("GEMINI_API_URL", "https://generativelanguage.googleapis.com"),
            api_key=os.getenv("GEMINI_API_KEY", ""),
            model=os.getenv("GEMINI_MODEL", "gemini-2.0-flash"),
            timeout=_env_int("GEMINI_TIMEOUT", 60),
            heuristic_fallback=_env_bool("SHEETMAPPER_HEURISTIC_FALLBACK", True),
        )


@dataclass
class AppConfig:
    """Configuração da aplicação."""

    upload_dir: str = "./uploads"
    output_dir: str = "./output"
    templates_file: str = "./templates.json"
    max_rows_per_file: int = 10000
    preview_limit: int = 100
    sequence_column: str = "序号"
    gemini: GeminiConfig = None

    def __post_init__(self):
        """Inicializa valores padrão."""
        if self.gemini is None:
            self.gemini = GeminiConfig.from_env()

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Carrega config de variáveis de ambiente."""
        return cls(
            upload_dir=os.getenv("SHEETMAPPER_UPLOAD_DIR", "./uploads"),
            output_dir=os.getenv("SHEETMAPPER_OUTPUT_DIR", "./output"),
            templates_file=os.getenv("SHEETMAPPER_TEMPLATES_FILE", "./templates.json"),
            max_rows_per_file=_env_int("SHEETMAPPER_MAX_ROWS", 10000),
            preview_limit=_env_int("SHEETMAPPER_PREVIEW_LIMIT", 100),
            sequence_column=os.getenv("SHEETMAPPER_SEQUENCE_COLUMN", "序号"),
            gemini=GeminiConfig.from_env(),
        )


# Instância global
app_config = AppConfig.from_env()
