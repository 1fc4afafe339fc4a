import json

import pytest

from repo_chunker.config import CodeBlockStyle, OutputFormat, TaskKind
from repo_chunker.output.presets import TASK_PRESETS, get_task_preset
from repo_chunker.output.prompts import TaskRenderer, code_blocks, directory_tree
from repo_chunker.types import Chunk, ChunkEntry


def _chunk() -> Chunk:
    return Chunk(
        index=1,
        entries=[
            ChunkEntry(
                source_path="src/lib.rs", part_index=None, content="fn a() {}\nfn b() {}\n", tokens=8
            ),
            ChunkEntry(source_path="Cargo.toml", part_index=None, content="[package]\n", tokens=3),
            ChunkEntry(source_path="src/app/main.py", part_index=0, content="print(1)\n", tokens=3),
        ],
        total_tokens=14,
    )


def test_every_task_kind_has_a_preset() -> None:
    assert set(TASK_PRESETS) == set(TaskKind)
    for kind, preset in TASK_PRESETS.items():
        assert preset.kind is kind
        assert preset.id == kind.value
        assert "{{ code_content }}" in preset.user_prompt_template
        assert 0.0 <= preset.temperature_hint <= 1.0


def test_preset_hints() -> None:
    review = get_task_preset("code-review")
    bugs = get_task_preset(TaskKind.BUG_ANALYSIS)

    assert review.suggested_model == "claude-sonnet-4"
    assert review.max_tokens_hint == 150_000
    assert bugs.temperature_hint == 0.2
    assert not bugs.include_structure
    assert get_task_preset("architecture-review").suggested_model == "claude-opus-4"


def test_unknown_preset_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown task preset"):
        get_task_preset("poetry")


def test_directory_tree() -> None:
    tree = directory_tree(["src/lib.rs", "Cargo.toml", "src/app/main.py", "src/lib.rs"])

    assert tree == "Cargo.toml\nsrc/\n  app/\n    main.py\n  lib.rs"


def test_code_block_styles() -> None:
    entries = _chunk().entries[:1]

    markdown = code_blocks(entries, CodeBlockStyle.MARKDOWN)
    xml = code_blocks(entries, CodeBlockStyle.XML)
    inline = code_blocks(entries, CodeBlockStyle.INLINE)

    assert markdown == "### src/lib.rs\n\n```rust\nfn a() {}\nfn b() {}\n```"
    assert xml == '<file path="src/lib.rs"><![CDATA[fn a() {}\nfn b() {}]]></file>'
    assert inline == "src/lib.rs:\nfn a() {}\nfn b() {}"


def test_prompt_variables() -> None:
    renderer = TaskRenderer(get_task_preset("migration-plan"), OutputFormat.MARKDOWN)

    variables = renderer.prompt_variables(_chunk())

    assert variables["file_count"] == 3
    assert variables["total_lines"] == 4
    assert variables["languages"] == "python, rust, toml"
    assert variables["total_tokens"] == 14
    assert variables["dependencies"] == "Cargo.toml"


def test_markdown_task_prompt() -> None:
    renderer = TaskRenderer(get_task_preset("code-review"), OutputFormat.MARKDOWN)

    rendered = renderer.render(_chunk(), 3)

    assert rendered.startswith("# Code Review: chunk 2 of 3\n")
    assert "- Suggested model: claude-sonnet-4" in rendered
    assert "## Files\n\n```text\nCargo.toml\nsrc/\n" in rendered
    assert "## System prompt\n\nYou are an expert code reviewer" in rendered
    assert "- Total Files: 3" in rendered
    assert "- Estimated Tokens: 14" in rendered
    assert "### src/app/main.py (part 1)\n\n```python\nprint(1)\n```" in rendered
    assert "{{" not in rendered


def test_structure_follows_preset() -> None:
    renderer = TaskRenderer(get_task_preset("bug-analysis"), OutputFormat.MARKDOWN)

    assert "## Files" not in renderer.render(_chunk(), 1)


def test_json_task_prompt() -> None:
    renderer = TaskRenderer(get_task_preset("security-audit"), OutputFormat.JSON)

    payload = json.loads(renderer.render(_chunk(), 2))

    assert payload["task"] == {
        "id": "security-audit",
        "name": "Security Audit",
        "suggested_model": "claude-sonnet-4",
        "max_tokens_hint": 120_000,
        "temperature_hint": 0.2,
    }
    assert payload["index"] == 2
    assert payload["structure"] == ["src/lib.rs", "Cargo.toml", "src/app/main.py"]
    assert payload["system_prompt"].startswith("You are a security expert.")
    assert "```rust\nfn a() {}" in payload["user_prompt"]


def test_xml_task_prompt() -> None:
    renderer = TaskRenderer(get_task_preset("api-design"), OutputFormat.XML)

    rendered = renderer.render(_chunk(), 2)

    assert '<prompt task="api-design" index="2" total="2" tokens="14" degraded="false">' in rendered
    assert '<metadata model="claude-sonnet-4" max_tokens="100000" temperature="0.4"/>' in rendered
    assert "<path>src/app/main.py</path>" in rendered
    assert "<user><![CDATA[Review the API design in this codebase." in rendered
