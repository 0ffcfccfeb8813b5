"""
Config Store — the bridge's flat ``KEY=value`` .env document.

The document is parsed once into a ConfigDocument, patched by key,
and written back atomically (write to temp file, then rename).
Comment lines, blank lines, and keys this installer knows nothing
about survive every update untouched.

Values are written literally, with no quoting or escaping, exactly
as the bridge's dotenv loader expects them. A value that would
break the line format (an embedded newline) is rejected rather than
written.
"""

from __future__ import annotations

import logging
import re
import shutil
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ConfigStoreError(Exception):
    """Raised when the .env file cannot be read, written, or patched."""


def _split_entry(line: str) -> tuple[str, str] | None:
    """Return (key, value) for a KEY=value line, None for anything else."""
    stripped = line.strip()
    if not stripped or stripped.startswith("#") or "=" not in stripped:
        return None
    key, _, value = line.lstrip().partition("=")
    key = key.strip()
    if not _KEY_RE.match(key):
        return None
    return key, value


class ConfigDocument:
    """Ordered, line-preserving model of a .env file."""

    def __init__(self, lines: list[str] | None = None):
        self._lines: list[str] = list(lines or [])

    @classmethod
    def parse(cls, text: str) -> ConfigDocument:
        return cls(text.splitlines())

    # ── Reads ───────────────────────────────────────────────────

    def get(self, key: str) -> str | None:
        """Value of the first line defining ``key``, or None."""
        for line in self._lines:
            entry = _split_entry(line)
            if entry and entry[0] == key:
                return entry[1]
        return None

    def keys(self) -> list[str]:
        seen: list[str] = []
        for line in self._lines:
            entry = _split_entry(line)
            if entry and entry[0] not in seen:
                seen.append(entry[0])
        return seen

    def values(self) -> dict[str, str]:
        """All keys with their first-defined value, in file order."""
        result: dict[str, str] = {}
        for line in self._lines:
            entry = _split_entry(line)
            if entry and entry[0] not in result:
                result[entry[0]] = entry[1]
        return result

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    # ── Writes ──────────────────────────────────────────────────

    def set(self, key: str, value: str) -> bool:
        """Upsert ``key``. Returns True if the document changed.

        An existing key keeps its line position; later duplicate
        definitions of the same key are dropped so keys stay unique.
        A new key is appended.
        """
        if not _KEY_RE.match(key):
            raise ConfigStoreError(f"Invalid config key: {key!r}")
        if "\n" in value or "\r" in value:
            raise ConfigStoreError(f"Value for {key} contains a line break")

        formatted = f"{key}={value}"
        changed = False
        found = False
        kept: list[str] = []

        for line in self._lines:
            entry = _split_entry(line)
            if entry and entry[0] == key:
                if found:
                    changed = True
                    continue
                found = True
                if line != formatted:
                    changed = True
                kept.append(formatted)
            else:
                kept.append(line)

        if not found:
            kept.append(formatted)
            changed = True

        self._lines = kept
        return changed

    def render(self) -> str:
        if not self._lines:
            return ""
        return "\n".join(self._lines) + "\n"


class EnvStore:
    """File-backed Config Store.

    Every ``set`` re-reads the file first, so edits made by hand
    between runs are picked up rather than overwritten.
    """

    def __init__(self, path: Path, template: Path | None = None):
        self._path = path
        self._template = template

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def ensure_exists(self) -> bool:
        """Create the file if absent. Returns True if it was created.

        Copies the template (``.env.example``) when one is present,
        otherwise creates an empty file.
        """
        if self._path.is_file():
            return False

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            if self._template is not None and self._template.is_file():
                shutil.copyfile(self._template, self._path)
                logger.info("Created %s from template %s", self._path, self._template.name)
            else:
                self._path.touch()
                logger.info("Created empty %s", self._path)
        except OSError as e:
            raise ConfigStoreError(f"Cannot create {self._path}: {e}") from e
        return True

    def load(self) -> ConfigDocument:
        """Parse the file. A missing file is an empty document."""
        if not self._path.is_file():
            return ConfigDocument()
        try:
            return ConfigDocument.parse(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigStoreError(f"Cannot read {self._path}: {e}") from e

    def get(self, key: str) -> str | None:
        return self.load().get(key)

    def values(self) -> dict[str, str]:
        return self.load().values()

    def set(self, key: str, value: str) -> bool:
        """Upsert a single key. Returns True if the file changed."""
        self.ensure_exists()
        document = self.load()
        if not document.set(key, value):
            logger.debug("Config key %s already up to date", key)
            return False
        self._write(document)
        logger.info("Set %s in %s", key, self._path.name)
        return True

    def _write(self, document: ConfigDocument) -> None:
        content = document.render()
        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=self._path.parent,
                prefix=".env_",
                suffix=".tmp",
            )
            tmp = Path(tmp_path)
            try:
                with open(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                shutil.copymode(self._path, tmp)
                tmp.replace(self._path)
            except Exception:
                tmp.unlink(missing_ok=True)
                raise
        except OSError as e:
            raise ConfigStoreError(f"Cannot write {self._path}: {e}") from e
