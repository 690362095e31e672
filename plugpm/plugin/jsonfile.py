"""
JSON State Files.

Base class for the manifest (plugins.json) and the lockfile
(plugins-lock.json): tolerant reads, deterministic writes and a dirty flag.
"""

import json
import os
import uuid
from pathlib import Path
from typing import Any

from plugpm.logger import PluginsLogger


class JsonFile:
    """
    A JSON document persisted on disk and mutated in memory.

    Subclasses implement _load() and _dump(). The file is read once on
    construction; write() is expected to be called once, at the end of a
    session, when has_changed is set.
    """

    label = "json"
    sort_keys = True

    def __init__(self, file_path: Path | str, logger: PluginsLogger | None = None):
        self.file_path = Path(file_path)
        self.logger = logger or PluginsLogger()
        self.has_changed = False
        self.read()

    def _reset(self) -> None:
        raise NotImplementedError

    def _load(self, data: dict[str, Any]) -> None:
        raise NotImplementedError

    def _dump(self) -> dict[str, Any]:
        raise NotImplementedError

    def read(self) -> None:
        """
        Load state from disk.

        A missing, empty or malformed file leaves an empty state and records
        a warning. Never raises.
        """
        self._reset()
        self.has_changed = False
        prefix = f"{self.label}.read"

        self.logger.info(f"{prefix}Start", f"Reading {self.file_path.name} file.")

        if not self.file_path.exists():
            self.logger.warning(
                f"{prefix}FileNotFound",
                f"{self.file_path.name} file was not found.",
                filePath=str(self.file_path),
            )
            return

        try:
            contents = self.file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            self.logger.warning(
                f"{prefix}Error",
                f"Could not read {self.file_path.name} file.",
                filePath=str(self.file_path),
                error=str(e),
            )
            return

        if not contents.strip():
            self.logger.warning(f"{prefix}EmptyFile", f"{self.file_path.name} file is empty.")
            return

        try:
            data = json.loads(contents)
        except json.JSONDecodeError as e:
            self.logger.warning(
                f"{prefix}InvalidJson",
                f"{self.file_path.name} file is not valid JSON, ignoring it.",
                filePath=str(self.file_path),
                error=str(e),
            )
            return

        if not isinstance(data, dict):
            self.logger.warning(
                f"{prefix}InvalidJson",
                f"{self.file_path.name} file must contain a JSON object, ignoring it.",
                filePath=str(self.file_path),
            )
            return

        self._load(data)

        self.logger.info(f"{prefix}End", f"Finished reading {self.file_path.name} file.")

    def write(self) -> bool:
        """
        Serialize state to disk.

        Keys are sorted and the document ends with a newline so the file
        diffs cleanly under version control. The document is written to a
        sibling file first and moved over the target, so a reader never sees
        a partial file. Write failures are logged, not raised: the in-memory
        state stays authoritative.

        Returns:
            True if the file was written
        """
        self.logger.info(f"{self.label}.writeStart", f"Writing to {self.file_path.name} file.")

        contents = json.dumps(self._dump(), indent=4, sort_keys=self.sort_keys, ensure_ascii=False) + "\n"

        temp_path = self.file_path.with_name(f".{self.file_path.name}.{uuid.uuid4().hex[:8]}.tmp")
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(contents, encoding="utf-8")
            os.replace(temp_path, self.file_path)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            self.logger.error(
                f"{self.label}.writeError",
                f"Could not write {self.file_path.name} file.",
                filePath=str(self.file_path),
                error=str(e),
            )
            return False

        self.has_changed = False
        self.logger.info(f"{self.label}.writeEnd", f"Finished writing to {self.file_path.name} file.")
        return True
