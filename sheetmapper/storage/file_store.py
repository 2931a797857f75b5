"""Loaded files, keyed by generated id."""
import logging
import shutil
import uuid
from pathlib import Path
from typing import Dict, List, Optional

from sheetmapper.errors import MissingResource
from sheetmapper.parser.parser_factory import ParserFactory
from sheetmapper.schema.models import LoadedFile, PreviewData

logger = logging.getLogger(__name__)


class FileStore:
    """Parses files on load and keeps them addressable by id."""

    def __init__(self, upload_dir: Optional[str] = None):
        """
        Args:
            upload_dir: If set, loaded files are copied here first
        """
        self.upload_dir = Path(upload_dir) if upload_dir else None
        self._files: Dict[str, LoadedFile] = {}

    def load(self, path: str, name: Optional[str] = None) -> LoadedFile:
        """
        Parse a file and register it.

        Raises:
            ValueError: Unsupported format
            MissingResource: File not found or unreadable
        """
        source = Path(path)
        name = name or source.name
        parser = ParserFactory.create_parser(name)

        file_id = str(uuid.uuid4())
        stored_path = source
        if self.upload_dir is not None:
            if not source.is_file():
                raise MissingResource(f"File not found: {path}")
            self.upload_dir.mkdir(parents=True, exist_ok=True)
            stored_path = self.upload_dir / f"{file_id}{source.suffix.lower()}"
            shutil.copyfile(source, stored_path)

        parsed = parser.parse(str(stored_path))
        loaded = LoadedFile(id=file_id, name=name, path=str(stored_path), parsed=parsed)
        self._files[file_id] = loaded

        logger.info(
            f"Loaded {name}: {len(parsed.sheets)} sheet(s), {parsed.total_row_count} rows"
        )
        return loaded

    def get(self, file_id: str) -> Optional[LoadedFile]:
        return self._files.get(file_id)

    def list(self) -> List[LoadedFile]:
        return list(self._files.values())

    def remove(self, file_id: str) -> bool:
        """Forget a file, deleting its uploaded copy."""
        loaded = self._files.pop(file_id, None)
        if loaded is None:
            return False

        if self.upload_dir is not None:
            Path(loaded.path).unlink(missing_ok=True)
        return True

    def preview(self, file_id: str, sheet: Optional[str] = None, limit: int = 30) -> PreviewData:
        """
        Row window of a loaded file.

        Raises:
            MissingResource: Unknown id, missing file or sheet
        """
        loaded = self.get(file_id)
        if loaded is None:
            raise MissingResource(f"Unknown file id: {file_id}")

        parser = ParserFactory.create_parser(loaded.name)
        return parser.preview(loaded.path, sheet=sheet, limit=limit)
