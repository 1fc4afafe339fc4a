"""Directory walk producing candidate files for the pipeline."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path

from repo_chunker.config import DEFAULT_STREAMING_THRESHOLD, ScanConfig
from repo_chunker.errors import UnreadableFileError
from repo_chunker.types import ScannedFile

logger = logging.getLogger(__name__)

SKIP_DIRS = frozenset(
    {
        ".git",
        ".svn",
        ".hg",
        "__pycache__",
        "node_modules",
        "venv",
        ".venv",
        "env",
        "target",
        "dist",
        "build",
        ".idea",
        ".vscode",
        ".mypy_cache",
        ".pytest_cache",
        ".tox",
    }
)

LOCK_FILES = frozenset(
    {
        "Cargo.lock",
        "package-lock.json",
        "yarn.lock",
        "pnpm-lock.yaml",
        "poetry.lock",
        "uv.lock",
        "Pipfile.lock",
        "go.sum",
        "composer.lock",
    }
)

BINARY_EXTENSIONS = frozenset(
    {
        # Images
        ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".tiff",
        # Documents
        ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".odt", ".ods",
        # Archives
        ".zip", ".tar", ".gz", ".rar", ".7z", ".bz2", ".xz",
        # Executables
        ".exe", ".dll", ".so", ".dylib", ".bin", ".a", ".lib",
        # Media
        ".mp3", ".mp4", ".avi", ".mov", ".wav", ".flac", ".mkv", ".webm",
        # Compiled
        ".pyc", ".pyo", ".class", ".o", ".obj", ".wasm", ".rlib",
        # Fonts
        ".ttf", ".otf", ".woff", ".woff2", ".eot",
        # Other
        ".db", ".sqlite", ".sqlite3",
    }
)

_SAMPLE_SIZE = 8192
_TEXT_BYTES = frozenset(range(32, 127)) | {9, 10, 12, 13}


def is_binary_content(content: bytes, sample_size: int = _SAMPLE_SIZE) -> bool:
    """Null byte, or more than 30% non-text bytes in the leading sample.

    Bytes >= 0x80 that decode as UTF-8 count as text.
    """
    if not content:
        return False
    sample = content[:sample_size]
    if b"\x00" in sample:
        return True
    try:
        sample.decode("utf-8")
        return False
    except UnicodeDecodeError as exc:
        # A multi-byte sequence cut by the sample boundary is still text.
        if exc.start >= len(sample) - 3 and exc.reason == "unexpected end of data":
            return False
    non_text = sum(1 for byte in sample if byte not in _TEXT_BYTES)
    return non_text / len(sample) > 0.30


def detect_binary(path: str, content: bytes) -> bool:
    if Path(path).suffix.lower() in BINARY_EXTENSIONS:
        return True
    return is_binary_content(content)


@dataclass(frozen=True, slots=True)
class IgnoreRule:
    """One `.gitignore` line, matched with `fnmatch` on POSIX relative paths."""

    pattern: str
    anchored: bool
    directory_only: bool

    @classmethod
    def parse(cls, line: str) -> "IgnoreRule | None":
        line = line.strip()
        if not line or line.startswith("#"):
            return None
        if line.startswith("!"):
            logger.debug(
                f"Skipping negated ignore pattern {line!r}: re-inclusion is not supported"
            )
            return None
        directory_only = line.endswith("/")
        line = line.rstrip("/")
        anchored = "/" in line
        return cls(line.lstrip("/"), anchored, directory_only)

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if self.directory_only and not is_dir:
            return False
        if self.anchored:
            return fnmatch(rel_path, self.pattern) or fnmatch(
                rel_path, self.pattern.replace("**/", "")
            )
        return fnmatch(rel_path.rsplit("/", 1)[-1], self.pattern)


@dataclass(slots=True)
class ScanReport:
    files: list[ScannedFile] = field(default_factory=list)
    unreadable: list[str] = field(default_factory=list)
    ignored: int = 0


class FileScanner:
    """Walks `root_dir` and reads candidate files.

    Files larger than the streaming threshold are not loaded here; the
    pipeline reads them line by line instead.
    """

    def __init__(
        self,
        config: ScanConfig | None = None,
        *,
        streaming_threshold_bytes: int = DEFAULT_STREAMING_THRESHOLD,
    ) -> None:
        self.config = config or ScanConfig()
        self.root = Path(self.config.root_dir)
        self.streaming_threshold_bytes = streaming_threshold_bytes
        self._skip_dirs = SKIP_DIRS | set(self.config.exclude_dirs)
        self._ignore_rules = self._load_gitignore() if self.config.respect_gitignore else []

    def scan(self) -> ScanReport:
        if not self.root.is_dir():
            raise FileNotFoundError(f"Not a directory: {self.root}")

        report = ScanReport()
        for dirpath, dirnames, filenames in os.walk(self.root):
            rel_dir = Path(dirpath).relative_to(self.root).as_posix()
            rel_dir = "" if rel_dir == "." else rel_dir
            dirnames[:] = sorted(
                name
                for name in dirnames
                if not self._skip_dir(f"{rel_dir}/{name}" if rel_dir else name, name)
            )
            for filename in sorted(filenames):
                rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
                if self._skip_file(rel_path, filename):
                    report.ignored += 1
                    continue
                location = Path(dirpath) / filename
                try:
                    report.files.append(self._read(rel_path, location))
                except UnreadableFileError as exc:
                    logger.warning(str(exc))
                    report.unreadable.append(rel_path)

        report.files.sort(key=lambda scanned: scanned.path)
        logger.info(
            f"Scanned {self.root}: {len(report.files)} files, {report.ignored} ignored, "
            f"{len(report.unreadable)} unreadable"
        )
        return report

    def _read(self, rel_path: str, location: Path) -> ScannedFile:
        try:
            size = location.stat().st_size
            if size > self.streaming_threshold_bytes:
                with location.open("rb") as handle:
                    head = handle.read(_SAMPLE_SIZE)
                return ScannedFile(
                    path=rel_path,
                    location=str(location),
                    raw_bytes=None,
                    is_binary=detect_binary(rel_path, head),
                    size_bytes=size,
                )
            raw = location.read_bytes()
        except OSError as exc:
            raise UnreadableFileError(rel_path, exc.strerror or str(exc)) from exc
        return ScannedFile(
            path=rel_path,
            location=str(location),
            raw_bytes=raw,
            is_binary=detect_binary(rel_path, raw),
            size_bytes=len(raw),
        )

    def _skip_dir(self, rel_path: str, name: str) -> bool:
        if name in self._skip_dirs:
            return True
        if name.startswith(".") and not self.config.include_hidden:
            return True
        if any(rule.matches(rel_path, True) for rule in self._ignore_rules):
            return True
        return any(fnmatch(rel_path, pattern) for pattern in self.config.exclude_globs)

    def _skip_file(self, rel_path: str, name: str) -> bool:
        if name in LOCK_FILES:
            return True
        if name.startswith(".") and not self.config.include_hidden:
            return True
        if any(rule.matches(rel_path, False) for rule in self._ignore_rules):
            return True
        if any(fnmatch(rel_path, pattern) for pattern in self.config.exclude_globs):
            return True
        if self.config.include_globs:
            return not any(
                fnmatch(rel_path, pattern) or fnmatch(name, pattern)
                for pattern in self.config.include_globs
            )
        return False

    def _load_gitignore(self) -> list[IgnoreRule]:
        path = self.root / ".gitignore"
        if not path.is_file():
            return []
        rules = []
        for line in path.read_text(encoding="utf-8", errors="replace").splitlines():
            rule = IgnoreRule.parse(line)
            if rule is not None:
                rules.append(rule)
        return rules
