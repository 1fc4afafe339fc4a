"""Per-language lexical rule tables.

Each language is a frozen table of delimiters and patterns consumed by one
shared lexer and filter engine; there is no per-language subclass.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from repo_chunker.types import LanguageTag


class BlockStyle(str, Enum):
    """How the extent of a test block is found."""

    BRACES = "braces"
    CALL = "call"
    INDENT = "indent"


@dataclass(frozen=True, slots=True)
class StringRule:
    """An opening delimiter and how to find its closer.

    `closer` is a `str.format` template filled from the named groups of
    `opener`. With `whole=True` the opener matches the complete literal
    (character literals) and no closer is searched.
    """

    opener: str
    closer: str = '"'
    escapes: bool = True
    docstring: bool = False
    whole: bool = False


@dataclass(frozen=True, slots=True)
class LanguageRules:
    language: LanguageTag
    line_comment: str | None = "//"
    doc_line_comment: str | None = None
    block_comment: tuple[str, str] | None = ("/*", "*/")
    doc_block_comment: str | None = None
    nested_blocks: bool = False
    strings: tuple[StringRule, ...] = ()
    debug_calls: tuple[str, ...] = ()
    debug_needs_semicolon: bool = False
    test_marker: str | None = None
    test_style: BlockStyle = BlockStyle.BRACES


_DQ = StringRule(opener='"')
_SQ = StringRule(opener="'", closer="'")
_CHAR = StringRule(opener=r"'(?:\\.[^'\\\n]{0,8}|[^\\'\n])'", whole=True)

RUST = LanguageRules(
    language=LanguageTag.RUST,
    doc_line_comment=r"///(?!/)|//!",
    doc_block_comment=r"/\*\*(?![*/])|/\*!",
    nested_blocks=True,
    strings=(
        StringRule(opener=r'(?<![\w])b?r(?P<hashes>#*)"', closer='"{hashes}', escapes=False),
        _DQ,
        _CHAR,
    ),
    debug_calls=(r"eprintln!", r"eprint!", r"println!", r"print!", r"dbg!"),
    debug_needs_semicolon=True,
    test_marker=(
        r"^\s*#\[(?:test|bench|cfg\(test\)|should_panic\b[^\]]*|ignore\b[^\]]*"
        r"|rstest\b[^\]]*|(?:\w+::)+test\b[^\]]*)\]"
    ),
)

PYTHON = LanguageRules(
    language=LanguageTag.PYTHON,
    line_comment="#",
    block_comment=None,
    strings=(
        StringRule(
            opener=r"(?:(?<![\w])[rRbBuUfF]{1,2})?(?P<quote>'''|\"\"\")",
            closer="{quote}",
            docstring=True,
        ),
        StringRule(opener=r"(?:(?<![\w])[rRbBuUfF]{1,2})?(?P<quote>['\"])", closer="{quote}"),
    ),
    debug_calls=(r"print", r"pprint(?:\.pprint)?", r"breakpoint", r"i?pdb\.set_trace"),
    test_marker=(
        r"^\s*(?:@(?:pytest|unittest)\b|(?:async\s+)?def\s+test_\w*|class\s+Test\w*\b)"
    ),
    test_style=BlockStyle.INDENT,
)

JAVASCRIPT_LIKE = LanguageRules(
    language=LanguageTag.JAVASCRIPT_LIKE,
    doc_block_comment=r"/\*\*(?![*/])",
    strings=(_DQ, _SQ, StringRule(opener="`", closer="`")),
    debug_calls=(r"console\.(?:log|debug|trace|dir|table|info)",),
    test_marker=(
        r"^\s*(?:describe|it|test|beforeEach|afterEach|beforeAll|afterAll)"
        r"(?:\.(?:only|skip|todo|concurrent))?\s*\("
    ),
    test_style=BlockStyle.CALL,
)

GO = LanguageRules(
    language=LanguageTag.GO,
    strings=(_DQ, StringRule(opener="`", closer="`", escapes=False), _CHAR),
    debug_calls=(r"fmt\.Print(?:ln|f)?", r"println", r"print"),
    test_marker=r"^\s*func\s+(?:Test|Benchmark|Example|Fuzz)\w*\s*\(",
)

JAVA_KOTLIN = LanguageRules(
    language=LanguageTag.JAVA_KOTLIN,
    doc_block_comment=r"/\*\*(?![*/])",
    strings=(StringRule(opener='"""', closer='"""'), _DQ, _CHAR),
    debug_calls=(
        r"System\.(?:out|err)\.print(?:ln|f)?",
        r"\w+\.printStackTrace",
        r"println",
        r"print",
    ),
    test_marker=(
        r"^\s*@(?:Test|ParameterizedTest|RepeatedTest|TestFactory|TestTemplate"
        r"|BeforeEach|AfterEach|BeforeAll|AfterAll|BeforeClass|AfterClass|Before|After"
        r"|org\.junit(?:\.\w+)+)\b"
    ),
)

C_LIKE = LanguageRules(
    language=LanguageTag.C_LIKE,
    doc_line_comment=r"///(?!/)|//!",
    doc_block_comment=r"/\*\*(?![*/])|/\*!",
    strings=(
        StringRule(
            opener=r'(?<![\w])(?:u8|u|U|L)?R"(?P<delim>[^()\\\s"]{0,16})\(',
            closer='){delim}"',
            escapes=False,
        ),
        _DQ,
        _CHAR,
    ),
    debug_calls=(r"printf", r"fprintf", r"puts"),
    debug_needs_semicolon=True,
    test_marker=r"^\s*(?:TEST|TEST_F|TEST_P|TYPED_TEST|TYPED_TEST_P|TEST_CASE|SCENARIO)\s*\(",
)

PLAIN_TEXT = LanguageRules(
    language=LanguageTag.PLAIN_TEXT,
    line_comment=None,
    block_comment=None,
)

RULES: dict[LanguageTag, LanguageRules] = {
    rules.language: rules
    for rules in (RUST, PYTHON, JAVASCRIPT_LIKE, GO, JAVA_KOTLIN, C_LIKE, PLAIN_TEXT)
}


def rules_for(language: LanguageTag) -> LanguageRules:
    return RULES[language]


def compile_marker(rules: LanguageRules) -> re.Pattern[str] | None:
    return re.compile(rules.test_marker) if rules.test_marker else None
