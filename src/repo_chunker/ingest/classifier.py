"""Language classification by extension, shebang and caller overrides."""

from __future__ import annotations

import re
from pathlib import PurePosixPath

from repo_chunker.types import LanguageTag

EXTENSIONS: dict[str, LanguageTag] = {
    ".rs": LanguageTag.RUST,
    ".py": LanguageTag.PYTHON,
    ".pyw": LanguageTag.PYTHON,
    ".pyi": LanguageTag.PYTHON,
    ".js": LanguageTag.JAVASCRIPT_LIKE,
    ".jsx": LanguageTag.JAVASCRIPT_LIKE,
    ".mjs": LanguageTag.JAVASCRIPT_LIKE,
    ".cjs": LanguageTag.JAVASCRIPT_LIKE,
    ".ts": LanguageTag.JAVASCRIPT_LIKE,
    ".tsx": LanguageTag.JAVASCRIPT_LIKE,
    ".mts": LanguageTag.JAVASCRIPT_LIKE,
    ".cts": LanguageTag.JAVASCRIPT_LIKE,
    ".go": LanguageTag.GO,
    ".java": LanguageTag.JAVA_KOTLIN,
    ".kt": LanguageTag.JAVA_KOTLIN,
    ".kts": LanguageTag.JAVA_KOTLIN,
    ".c": LanguageTag.C_LIKE,
    ".h": LanguageTag.C_LIKE,
    ".cc": LanguageTag.C_LIKE,
    ".cpp": LanguageTag.C_LIKE,
    ".cxx": LanguageTag.C_LIKE,
    ".hpp": LanguageTag.C_LIKE,
    ".hh": LanguageTag.C_LIKE,
    ".hxx": LanguageTag.C_LIKE,
}

_SHEBANG_INTERPRETERS: tuple[tuple[re.Pattern[str], LanguageTag], ...] = (
    (re.compile(r"\bpython[\d.]*\b"), LanguageTag.PYTHON),
    (re.compile(r"\b(?:node|deno|bun)\b"), LanguageTag.JAVASCRIPT_LIKE),
)

_TEST_FILE_PATTERNS: dict[LanguageTag, re.Pattern[str]] = {
    LanguageTag.GO: re.compile(r"_test\.go$"),
    LanguageTag.PYTHON: re.compile(r"^(?:test_.*|.*_test|conftest)\.pyi?$"),
    LanguageTag.JAVASCRIPT_LIKE: re.compile(r"\.(?:test|spec)\.[cm]?[jt]sx?$"),
    LanguageTag.JAVA_KOTLIN: re.compile(r"(?:Test|Tests|IT)\.(?:java|kts?)$"),
}


class LanguageClassifier:
    """Maps a path (and optionally its first line) to a `LanguageTag`.

    Total: anything unrecognized is `PLAIN_TEXT`.
    """

    def __init__(self, overrides: dict[str, LanguageTag] | None = None) -> None:
        self._extensions = dict(EXTENSIONS)
        for extension, tag in (overrides or {}).items():
            key = extension if extension.startswith(".") else f".{extension}"
            self._extensions[key.lower()] = LanguageTag(tag)

    def classify(self, path: str, first_line: str | None = None) -> LanguageTag:
        suffix = PurePosixPath(path).suffix.lower()
        tag = self._extensions.get(suffix)
        if tag is not None:
            return tag
        if first_line and first_line.startswith("#!"):
            for pattern, shebang_tag in _SHEBANG_INTERPRETERS:
                if pattern.search(first_line):
                    return shebang_tag
        return LanguageTag.PLAIN_TEXT

    @staticmethod
    def is_test_path(path: str, language: LanguageTag) -> bool:
        """True when the file as a whole is a test file by naming convention."""
        pattern = _TEST_FILE_PATTERNS.get(language)
        if pattern is None:
            return False
        return bool(pattern.search(PurePosixPath(path).name))


def first_line_of(raw: bytes, limit: int = 256) -> str:
    head = raw[:limit].split(b"\n", 1)[0]
    return head.decode("utf-8", errors="replace").rstrip("\r")
