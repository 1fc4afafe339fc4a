"""Line-fed lexical scanner classifying code, comment and literal runs.

The scanner is a small state machine. Its state (inside a block comment or a
string, plus the closer it is waiting for) survives between `feed` calls, so a
file can be scanned line by line without holding it in memory.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from repo_chunker.filters.rules import LanguageRules, StringRule

_NAMED_GROUP = re.compile(r"\(\?P<\w+>")
_OPEN_BRACKETS = "([{"
_CLOSE_BRACKETS = ")]}"


class LexState(Enum):
    CODE = "code"
    LINE_COMMENT = "line_comment"
    BLOCK_COMMENT = "block_comment"
    STRING = "string"


class RunKind(str, Enum):
    CODE = "code"
    LINE_COMMENT = "line_comment"
    BLOCK_COMMENT = "block_comment"
    DOC_COMMENT = "doc_comment"
    LITERAL = "literal"
    DOCSTRING = "docstring"


COMMENT_KINDS = frozenset({RunKind.LINE_COMMENT, RunKind.BLOCK_COMMENT, RunKind.DOC_COMMENT})
LITERAL_KINDS = frozenset({RunKind.LITERAL, RunKind.DOCSTRING})


@dataclass(slots=True)
class Run:
    kind: RunKind
    text: str


@dataclass(frozen=True, slots=True)
class _Opener:
    kind: str
    regex: re.Pattern[str]
    doc: bool = False
    string: StringRule | None = None


def _openers(rules: LanguageRules) -> list[_Opener]:
    openers: list[_Opener] = []
    if rules.doc_block_comment:
        openers.append(_Opener("block", re.compile(rules.doc_block_comment), doc=True))
    if rules.block_comment:
        openers.append(_Opener("block", re.compile(re.escape(rules.block_comment[0]))))
    if rules.doc_line_comment:
        openers.append(_Opener("line", re.compile(rules.doc_line_comment), doc=True))
    if rules.line_comment:
        openers.append(_Opener("line", re.compile(re.escape(rules.line_comment))))
    for rule in rules.strings:
        kind = "char" if rule.whole else "string"
        openers.append(_Opener(kind, re.compile(rule.opener), string=rule))
    return openers


class Lexer:
    """Splits successive lines into typed runs.

    Lines are passed without their line terminator. Unterminated strings and
    block comments simply stay open until the input ends.
    """

    def __init__(self, rules: LanguageRules) -> None:
        self.rules = rules
        self.state = LexState.CODE
        self._openers = _openers(rules)
        self._combined = (
            re.compile(
                "|".join(
                    f"(?P<o{i}>{_NAMED_GROUP.sub('(?:', opener.regex.pattern)})"
                    for i, opener in enumerate(self._openers)
                )
            )
            if self._openers
            else None
        )
        self._block_tokens = self._block_pattern(rules)
        self._kind = RunKind.CODE
        self._closer: re.Pattern[str] | None = None
        self._escapes = True
        self._nesting = 0
        self._depth = 0
        self._line_depth = 0
        self._continued = False
        self._line_continued = False
        self._transitions = {
            LexState.CODE: self._scan_code,
            LexState.LINE_COMMENT: self._scan_line_comment,
            LexState.BLOCK_COMMENT: self._scan_block,
            LexState.STRING: self._scan_string,
        }

    @staticmethod
    def _block_pattern(rules: LanguageRules) -> re.Pattern[str] | None:
        if not rules.block_comment:
            return None
        opening, closing = (re.escape(token) for token in rules.block_comment)
        if rules.nested_blocks:
            return re.compile(f"{closing}|{opening}")
        return re.compile(closing)

    def feed(self, line: str) -> list[Run]:
        """Classify one line (without its terminator) into runs."""
        runs: list[Run] = []
        self._line_depth = self._depth
        self._line_continued = self._continued
        if not line and self.state in (LexState.BLOCK_COMMENT, LexState.STRING):
            runs.append(Run(self._kind, ""))
        pos = 0
        while pos < len(line):
            pos = self._transitions[self.state](line, pos, runs)
        code = "".join(run.text for run in runs if run.kind is RunKind.CODE)
        self._continued = self.state is LexState.CODE and code.rstrip().endswith("\\")
        return _merge(runs)

    def _scan_code(self, line: str, pos: int, runs: list[Run]) -> int:
        match = self._combined.search(line, pos) if self._combined else None
        end = match.start() if match else len(line)
        if end > pos:
            self._code(line[pos:end], runs)
        if match is None:
            return len(line)

        opener = self._openers[int(match.lastgroup[1:])]
        if opener.kind == "line":
            self.state = LexState.LINE_COMMENT
            self._kind = RunKind.DOC_COMMENT if opener.doc else RunKind.LINE_COMMENT
            return match.start()
        if opener.kind == "block":
            self.state = LexState.BLOCK_COMMENT
            self._kind = RunKind.DOC_COMMENT if opener.doc else RunKind.BLOCK_COMMENT
            self._nesting = 1
            runs.append(Run(self._kind, match.group()))
            return match.end()
        if opener.kind == "char":
            runs.append(Run(RunKind.LITERAL, match.group()))
            return match.end()
        return self._open_string(line, match.start(), opener, runs)

    def _open_string(self, line: str, start: int, opener: _Opener, runs: list[Run]) -> int:
        rule = opener.string
        own = opener.regex.match(line, start)
        closer = rule.closer.format(**own.groupdict())
        if rule.escapes:
            self._closer = re.compile(r"\\.|" + re.escape(closer))
        else:
            self._closer = re.compile(re.escape(closer))
        self._escapes = rule.escapes
        statement_start = (
            self._line_depth == 0 and not self._line_continued and not line[:start].strip()
        )
        self._kind = RunKind.DOCSTRING if rule.docstring and statement_start else RunKind.LITERAL
        self.state = LexState.STRING
        runs.append(Run(self._kind, own.group()))
        return own.end()

    def _scan_line_comment(self, line: str, pos: int, runs: list[Run]) -> int:
        runs.append(Run(self._kind, line[pos:]))
        self.state = LexState.CODE
        return len(line)

    def _scan_block(self, line: str, pos: int, runs: list[Run]) -> int:
        closing = self.rules.block_comment[1]
        for token in self._block_tokens.finditer(line, pos):
            if token.group() == closing:
                self._nesting -= 1
                if self._nesting == 0:
                    runs.append(Run(self._kind, line[pos : token.end()]))
                    self.state = LexState.CODE
                    return token.end()
            else:
                self._nesting += 1
        runs.append(Run(self._kind, line[pos:]))
        return len(line)

    def _scan_string(self, line: str, pos: int, runs: list[Run]) -> int:
        for token in self._closer.finditer(line, pos):
            if self._escapes and token.group().startswith("\\"):
                continue
            runs.append(Run(self._kind, line[pos : token.end()]))
            self.state = LexState.CODE
            return token.end()
        runs.append(Run(self._kind, line[pos:]))
        return len(line)

    def _code(self, text: str, runs: list[Run]) -> None:
        runs.append(Run(RunKind.CODE, text))
        for char in text:
            if char in _OPEN_BRACKETS:
                self._depth += 1
            elif char in _CLOSE_BRACKETS and self._depth:
                self._depth -= 1


def _merge(runs: list[Run]) -> list[Run]:
    merged: list[Run] = []
    for run in runs:
        if merged and merged[-1].kind is run.kind:
            merged[-1].text += run.text
        else:
            merged.append(run)
    return merged


def mask(runs: list[Run]) -> str:
    """Code view of a line: comments blanked, literals replaced by `_`.

    Offsets match the original line so patterns found here can be applied to
    the raw text.
    """
    parts: list[str] = []
    for run in runs:
        if run.kind is RunKind.CODE:
            parts.append(run.text)
        elif run.kind in COMMENT_KINDS:
            parts.append(" " * len(run.text))
        else:
            parts.append("_" * len(run.text))
    return "".join(parts)
