import pytest

from repo_chunker.config import FilterPolicy
from repo_chunker.filters.engine import filter_content
from repo_chunker.types import LanguageTag

SAMPLES = [
    (
        LanguageTag.RUST,
        "// Copyright 2024\n// MIT\n\n//! Crate docs.\nuse std::fmt;\n\n\n"
        "/// Adds.\nfn add(a: i32, b: i32) -> i32 { /* inline */ a + b } // tail\n\n"
        '#[test]\nfn t() {\n    println!("x");\n    let s = r#"// kept"#;\n}\n',
    ),
    (
        LanguageTag.PYTHON,
        '#!/usr/bin/env python\n"""Module doc."""\nimport os  # why\n\n\n'
        'def main():\n    """Entry."""\n    print("debug")\n    return 1\n\n\n'
        "class TestMain:\n    def test_a(self):\n        assert main() == 1\n",
    ),
    (
        LanguageTag.PYTHON,
        '"""Module summary.\n\nLonger description.\n"""\n\n\n'
        "def test_a():\n    x = 1\n# disabled for now\n    assert x\n\n\n"
        'def real():\n    """Summary.\n\n    More text.\n    """\n'
        '    sql = """\n    select 1\n\n    """\n    return sql\n'
        "# helpers below\ndef helper():\n    return 2\n",
    ),
    (LanguageTag.PYTHON, "'''\n'''\n"),
    (
        LanguageTag.JAVASCRIPT_LIKE,
        "/** Adds. */\nexport function add(a, b) {\n  console.log(a); // trace\n"
        '  return a + b;\n}\n\n\ndescribe("add", () => {\n  it("adds", () => {});\n});\n',
    ),
    (
        LanguageTag.GO,
        '// Package main.\npackage main\n\nimport "fmt"\n\nfunc Add(a, b int) int {\n'
        '\tfmt.Println("adding") // noisy\n\treturn a + b\n}\n\n'
        "func TestAdd(t *testing.T) {\n\tt.Log(`raw // text`)\n}\n",
    ),
    (
        LanguageTag.JAVA_KOTLIN,
        "/* License */\npublic class Calc {\n    /** Adds. */\n    public int add(int a, int b) {\n"
        '        System.out.println("add");\n        return a + b; // sum\n    }\n\n'
        "    @Test\n    public void testAdd() {\n        assertEquals(2, add(1, 1));\n    }\n}\n",
    ),
    (
        LanguageTag.C_LIKE,
        "/*\n * Header block.\n */\n#include <stdio.h>\r\n\r\n\r\n"
        'int a = 1;/* x */int b = 2; // two\r\nconst char *s = "/* not */";\r\n'
        'TEST(A, B) {\r\n    printf("%d", a);\r\n}\r\n',
    ),
]

POLICIES = [
    FilterPolicy(),
    FilterPolicy.minimal(),
    FilterPolicy.preserve_docs(),
    FilterPolicy.production(),
    FilterPolicy(remove_comments=True, remove_blank_lines=False),
    FilterPolicy(remove_doc_comments=True, preserve_headers=False),
]


@pytest.mark.parametrize("language,source", SAMPLES)
@pytest.mark.parametrize("policy", POLICIES)
def test_filtering_twice_changes_nothing(
    language: LanguageTag, source: str, policy: FilterPolicy
) -> None:
    once = filter_content(source, language, policy)

    assert filter_content(once, language, policy) == once


@pytest.mark.parametrize("language,source", SAMPLES)
def test_filtering_never_grows_content(language: LanguageTag, source: str) -> None:
    for policy in POLICIES:
        assert len(filter_content(source, language, policy)) <= len(source)
