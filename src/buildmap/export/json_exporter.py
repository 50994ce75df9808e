"""
JSON exporter for the resolved build map.
"""

import json
import logging
from pathlib import Path
from typing import Union

from ..core.build_store import BuildStore
from ..core.exceptions import ExportError
from ..core.models import ExportDocument
from .resolver import Resolver


logger = logging.getLogger(__name__)


DEFAULT_EXPORT_PATH = Path("data/chromium-data.json")


class JsonExporter:
    """
    Writes the resolved records and sync logs as one JSON document.

    The document is written to a temporary file beside the target and
    renamed into place, so readers only ever see a complete export.
    """

    def __init__(
        self,
        store: BuildStore,
        output_path: Union[str, Path] = DEFAULT_EXPORT_PATH,
        indent: int = 2,
        create_dirs: bool = True,
    ):
        """
        Initialize the exporter.

        Args:
            store: Build store to read from
            output_path: Export file path (fully overwritten on each export)
            indent: JSON indentation (None for compact output)
            create_dirs: Whether to create the parent directory automatically
        """
        self.store = store
        self.output_path = Path(output_path)
        self.indent = indent
        self.create_dirs = create_dirs
        self.resolver = Resolver(store)

    def build_document(self) -> ExportDocument:
        """Resolve records and collect sync logs without writing anything."""
        return ExportDocument(
            records=self.resolver.resolve(),
            sync_logs=self.store.list_sync_logs(),
        )

    def render(self, document: ExportDocument) -> str:
        return json.dumps(document.to_dict(), indent=self.indent, ensure_ascii=False)

    def export(self) -> ExportDocument:
        """
        Build the document and write it to the output path.

        Returns:
            The exported document

        Raises:
            ExportError: If the file could not be written
        """
        document = self.build_document()
        content = self.render(document)

        temp_path = self.output_path.with_suffix(self.output_path.suffix + ".tmp")
        try:
            if self.create_dirs:
                self.output_path.parent.mkdir(parents=True, exist_ok=True)
            with temp_path.open("w", encoding="utf-8") as f:
                f.write(content)
            temp_path.replace(self.output_path)
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            logger.error(f"Failed to write export {self.output_path}: {e}")
            raise ExportError(f"Failed to write export {self.output_path}: {e}") from e

        logger.info(
            f"Exported {len(document.records)} records and "
            f"{len(document.sync_logs)} sync logs to {self.output_path}"
        )
        return document
