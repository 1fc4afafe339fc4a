"""Line-oriented noise filter.

Lines flow through four stages:

1. Header: with `preserve_headers`, a leading shebang and the comment block at
   offset 0 are emitted verbatim.
2. Structural removal: test blocks and whole debug-print statements are found
   on the masked code view (comments blanked, literals hidden) and dropped.
   Candidates whose extent is still unknown are held back until they either
   complete or are rejected; rejected lines are replayed.
3. Comment stripping per policy.
4. Assembly: lines emptied by stripping are dropped and blank runs collapsed.

The lexer state is the only thing carried between lines, so a file can be
filtered while it is being read.
"""

from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Protocol

from repo_chunker.config import FilterPolicy
from repo_chunker.filters.lexer import COMMENT_KINDS, Lexer, LexState, Run, RunKind, mask
from repo_chunker.filters.rules import BlockStyle, LanguageRules, compile_marker, rules_for
from repo_chunker.types import LanguageTag

# Last significant characters after which a line continues the previous statement.
_CONTINUATION = frozenset("([,=+-*/%.&|^?<>~\\")
_PY_ITEM_HEADER = re.compile(r"\s*(?:@|(?:async\s+)?def\s|class\s)")


@dataclass(slots=True)
class _Line:
    number: int
    text: str
    ending: str
    runs: list[Run]
    code: str
    start: LexState
    end: LexState

    @property
    def has_code(self) -> bool:
        return bool(self.code.strip())


@dataclass(slots=True)
class _Step:
    """Outcome of feeding one line to a pending removal.

    `keep` lines go straight to output, `replay` lines are routed again.
    Held lines absent from both were removed.
    """

    done: bool
    keep: list[_Line] = field(default_factory=list)
    replay: list[_Line] = field(default_factory=list)


class _Removal(Protocol):
    def feed(self, line: _Line) -> _Step: ...

    def flush(self) -> _Step: ...


class _BraceBlock:
    """Marker, item header and the balanced `{...}` body (or up to `;`)."""

    search_limit = 50

    def __init__(self, offset: int) -> None:
        self._offset = offset
        self._held: list[_Line] = []
        self._code_lines = 0
        self._parens = 0
        self._braces = 0
        self._committed = False

    def feed(self, line: _Line) -> _Step:
        code = line.code[self._offset :]
        self._offset = 0
        if not self._committed:
            self._held.append(line)
            self._code_lines += line.has_code
        for char in code:
            if self._committed:
                if char == "{":
                    self._braces += 1
                elif char == "}":
                    self._braces -= 1
                    if self._braces == 0:
                        return _Step(done=True)
            elif char in "([":
                self._parens += 1
            elif char in ")]":
                self._parens = max(0, self._parens - 1)
            elif self._parens == 0 and char == ";":
                return _Step(done=True)
            elif self._parens == 0 and char == "{":
                self._committed = True
                self._braces = 1
                self._held.clear()
        if not self._committed and self._code_lines >= self.search_limit:
            return self.flush()
        return _Step(done=False)

    def flush(self) -> _Step:
        if self._committed:
            return _Step(done=True)
        return _Step(done=True, keep=self._held[:1], replay=self._held[1:])


class _CallBlock:
    """A test-framework call such as `describe(...)`, up to its closing paren."""

    def __init__(self, offset: int) -> None:
        self._offset = offset
        self._depth = 0

    def feed(self, line: _Line) -> _Step:
        code = line.code[self._offset :]
        self._offset = 0
        for char in code:
            if char in "([{":
                self._depth += 1
            elif char in ")]}":
                self._depth -= 1
                if self._depth == 0:
                    return _Step(done=True)
        return _Step(done=False)

    def flush(self) -> _Step:
        return _Step(done=True)


class _IndentBlock:
    """A Python test item: decorators, `def`/`class` line and indented body.

    Python has no block delimiter, so the extent is the run of lines indented
    deeper than the marker. Lines inside open brackets or strings always
    belong to the block. Blank lines and comments at or left of the marker
    are held until code decides whether the body continues, and are given
    back when it does not.
    """

    def __init__(self, indent: int, decorated: bool) -> None:
        self._indent = indent
        self._awaiting_item = decorated
        self._started = False
        self._depth = 0
        self._blanks: list[_Line] = []

    def feed(self, line: _Line) -> _Step:
        continuation = line.start is not LexState.CODE or self._depth > 0
        if not continuation and self._started:
            indent = len(line.text) - len(line.text.lstrip())
            if not line.has_code:
                if indent <= self._indent or not line.text.strip():
                    self._blanks.append(line)
                    return _Step(done=False)
            else:
                item_header = (
                    self._awaiting_item
                    and indent == self._indent
                    and _PY_ITEM_HEADER.match(line.code) is not None
                )
                if indent <= self._indent and not item_header:
                    return _Step(done=True, replay=[*self._blanks, line])
                if item_header and not line.code.lstrip().startswith("@"):
                    self._awaiting_item = False
        self._started = True
        self._blanks.clear()
        for char in line.code:
            if char in "([{":
                self._depth += 1
            elif char in ")]}":
                self._depth = max(0, self._depth - 1)
        return _Step(done=False)

    def flush(self) -> _Step:
        return _Step(done=True, replay=self._blanks)


class _DebugStatement:
    """A call to an allow-listed debug function, removed only as a whole statement."""

    line_limit = 200

    def __init__(self, offset: int, tail: re.Pattern[str]) -> None:
        self._offset = offset
        self._tail = tail
        self._held: list[_Line] = []
        self._code_lines = 0
        self._depth = 0

    def feed(self, line: _Line) -> _Step:
        self._held.append(line)
        self._code_lines += line.has_code
        code = line.code
        start, self._offset = self._offset, 0
        for pos in range(start, len(code)):
            char = code[pos]
            if char in "([{":
                self._depth += 1
            elif char in ")]}":
                self._depth -= 1
                if self._depth == 0:
                    if self._tail.fullmatch(code, pos + 1):
                        return _Step(done=True)
                    return self.flush()
        if self._code_lines >= self.line_limit:
            return self.flush()
        return _Step(done=False)

    def flush(self) -> _Step:
        return _Step(done=True, keep=self._held[:1], replay=self._held[1:])


class _Assembler:
    def __init__(self, collapse_blank: bool) -> None:
        self._collapse = collapse_blank
        self._ready: list[str] = []
        self._started = False
        self._blank_pending: str | None = None
        self._ends_with_newline = True

    def verbatim(self, text: str) -> None:
        self._emit(text)

    def line(
        self,
        text: str,
        ending: str,
        *,
        touched: bool,
        literal_start: bool,
        literal_end: bool,
    ) -> None:
        if touched and not literal_end:
            text = text.rstrip()
        blank = not text.strip() and not literal_start
        if blank and touched:
            return
        if blank and self._collapse:
            if self._started:
                self._blank_pending = ending or "\n"
            return
        if self._blank_pending is not None:
            self._emit(self._blank_pending)
            self._blank_pending = None
        self._emit(text + ending)

    def finish(self) -> None:
        if self._collapse and self._started and not self._ends_with_newline:
            self._emit("\n")

    def drain(self) -> list[str]:
        ready, self._ready = self._ready, []
        return ready

    def _emit(self, piece: str) -> None:
        if not piece:
            return
        self._ready.append(piece)
        self._started = True
        self._ends_with_newline = piece.endswith("\n")


class _FilterRun:
    """Mutable state for filtering one file."""

    def __init__(self, rules: LanguageRules, policy: FilterPolicy) -> None:
        self._rules = rules
        self._lexer = Lexer(rules)
        self._out = _Assembler(policy.remove_blank_lines)
        self._marker = compile_marker(rules) if policy.remove_tests else None
        self._debug = (
            re.compile(r"^\s*(?:" + "|".join(rules.debug_calls) + r")\s*\(")
            if policy.remove_debug_prints and rules.debug_calls
            else None
        )
        self._tail = re.compile(r"\s*;\s*" if rules.debug_needs_semicolon else r"\s*;?\s*")
        drop: set[RunKind] = set()
        if policy.remove_comments:
            drop |= {RunKind.LINE_COMMENT, RunKind.BLOCK_COMMENT}
        if policy.remove_doc_comments:
            drop |= {RunKind.DOC_COMMENT, RunKind.DOCSTRING}
        self._drop = frozenset(drop)
        self._in_header = policy.preserve_headers
        self._removal: _Removal | None = None
        self._count = 0
        self._depth = 0
        self._last_sig = ""

    def push(self, raw: str) -> list[str]:
        self._dispatch(self._lex(raw))
        return self._out.drain()

    def finish(self) -> list[str]:
        while self._removal is not None:
            step = self._removal.flush()
            self._removal = None
            pending: deque[_Line] = deque()
            self._apply(step, pending)
            self._drain(pending)
        self._out.finish()
        return self._out.drain()

    def _lex(self, raw: str) -> _Line:
        if raw.endswith("\r\n"):
            ending = "\r\n"
        elif raw.endswith("\n"):
            ending = "\n"
        else:
            ending = ""
        text = raw[: len(raw) - len(ending)]
        start = self._lexer.state
        runs = self._lexer.feed(text)
        line = _Line(self._count, text, ending, runs, mask(runs), start, self._lexer.state)
        self._count += 1
        return line

    def _dispatch(self, line: _Line) -> None:
        self._drain(deque([line]))

    def _drain(self, pending: deque[_Line]) -> None:
        while pending:
            current = pending.popleft()
            if self._removal is None:
                if self._header(current):
                    continue
                self._removal = self._start_removal(current)
                if self._removal is None:
                    self._keep(current)
                    continue
            step = self._removal.feed(current)
            if step.done:
                self._removal = None
            self._apply(step, pending)

    def _apply(self, step: _Step, pending: deque[_Line]) -> None:
        for line in step.keep:
            self._keep(line)
        pending.extendleft(reversed(step.replay))

    def _header(self, line: _Line) -> bool:
        if not self._in_header:
            return False
        if self._is_header_line(line):
            self._out.verbatim(line.text + line.ending)
            return True
        self._in_header = False
        return False

    def _is_header_line(self, line: _Line) -> bool:
        if line.number == 0 and line.text.startswith("#!") and not line.text.startswith("#!["):
            return True
        if line.start is LexState.BLOCK_COMMENT:
            return True
        if not line.text.strip():
            return False
        return all(run.kind in COMMENT_KINDS or not run.text.strip() for run in line.runs)

    def _start_removal(self, line: _Line) -> _Removal | None:
        if line.start is not LexState.CODE or self._depth:
            return None
        if self._marker is not None:
            found = self._marker.match(line.code)
            if found:
                if self._rules.test_style is BlockStyle.BRACES:
                    return _BraceBlock(found.end())
                if self._rules.test_style is BlockStyle.CALL:
                    return _CallBlock(found.end() - 1)
                indent = len(line.text) - len(line.text.lstrip())
                return _IndentBlock(indent, decorated=line.code.lstrip().startswith("@"))
        if self._debug is not None and self._last_sig not in _CONTINUATION:
            found = self._debug.match(line.code)
            if found:
                return _DebugStatement(found.end() - 1, self._tail)
        return None

    def _keep(self, line: _Line) -> None:
        text, touched = self._strip(line)
        self._out.line(
            text,
            line.ending,
            touched=touched,
            literal_start=line.start is LexState.STRING and self._kept_run(line, 0),
            literal_end=line.end is LexState.STRING and self._kept_run(line, -1),
        )
        for char in line.code:
            if char in "([":
                self._depth += 1
            elif char in ")]" and self._depth:
                self._depth -= 1
        significant = line.code.rstrip()
        if significant:
            self._last_sig = significant[-1]

    def _kept_run(self, line: _Line, index: int) -> bool:
        return bool(line.runs) and line.runs[index].kind not in self._drop

    def _strip(self, line: _Line) -> tuple[str, bool]:
        if not self._drop:
            return line.text, False
        pieces: list[str] = []
        touched = False
        gap = False
        for run in line.runs:
            if run.kind in self._drop:
                touched = gap = True
                continue
            text = run.text
            if gap and run.kind is RunKind.CODE and (not pieces or pieces[-1][-1].isspace()):
                text = text.lstrip(" \t")
            if not text:
                continue
            if gap and pieces and not pieces[-1][-1].isspace() and not text[0].isspace():
                pieces.append(" ")
            gap = False
            pieces.append(text)
        return "".join(pieces), touched


def split_lines(content: str) -> Iterator[str]:
    """Yield lines with their `\\n` terminator; only `\\n` ends a line."""
    start = 0
    while start < len(content):
        end = content.find("\n", start)
        if end == -1:
            yield content[start:]
            return
        yield content[start : end + 1]
        start = end + 1


class NoiseFilter:
    """Applies a `FilterPolicy` to source text of one language."""

    def __init__(self, language: LanguageTag, policy: FilterPolicy | None = None) -> None:
        self.language = language
        self.policy = policy or FilterPolicy()
        self.rules = rules_for(language)

    def filter_lines(self, lines: Iterable[str]) -> Iterator[str]:
        if self.language is LanguageTag.PLAIN_TEXT:
            yield from lines
            return
        run = _FilterRun(self.rules, self.policy)
        for raw in lines:
            yield from run.push(raw)
        yield from run.finish()

    def filter(self, content: str) -> str:
        return "".join(self.filter_lines(split_lines(content)))


def filter_content(
    content: str, language: LanguageTag, policy: FilterPolicy | None = None
) -> str:
    return NoiseFilter(language, policy).filter(content)
