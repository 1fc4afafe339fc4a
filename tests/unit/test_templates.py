import json
from pathlib import Path

import pytest

from repo_chunker.config import OutputConfig, OutputFormat, TaskKind
from repo_chunker.errors import TemplateError
from repo_chunker.output.presets import get_task_preset
from repo_chunker.output.prompts import TaskRenderer
from repo_chunker.output.templates import (
    MAX_TEMPLATE_BYTES,
    TemplateRenderer,
    validate_template,
)
from repo_chunker.output.writer import ChunkWriter, build_renderer
from repo_chunker.types import Chunk, ChunkEntry

VALID_TEMPLATE = (
    "Chunk {{ chunk_index }}/{{ total_chunks }}\n"
    "{% for file in files %}{{ file.path }}|{{ file.language }}|{{ file.lines }}\n{% endfor %}"
)


def _chunk() -> Chunk:
    return Chunk(
        index=0,
        entries=[
            ChunkEntry(source_path="src/lib.rs", part_index=None, content="fn a() {}\n", tokens=3),
            ChunkEntry(source_path="notes.txt", part_index=1, content="a & b\n", tokens=2),
        ],
        total_tokens=5,
    )


def _template(tmp_path: Path, source: str, name: str = "custom.j2") -> Path:
    path = tmp_path / name
    path.write_text(source, encoding="utf-8")
    return path


def test_valid_template_passes(tmp_path: Path) -> None:
    path = _template(tmp_path, VALID_TEMPLATE)

    assert validate_template(path) == VALID_TEMPLATE


def test_missing_template_file(tmp_path: Path) -> None:
    with pytest.raises(TemplateError, match="file not found"):
        validate_template(tmp_path / "absent.j2")


def test_directory_is_not_a_template(tmp_path: Path) -> None:
    with pytest.raises(TemplateError, match="not a file"):
        validate_template(tmp_path)


def test_empty_template(tmp_path: Path) -> None:
    with pytest.raises(TemplateError, match="empty"):
        validate_template(_template(tmp_path, "   \n  \n"))


def test_oversized_template(tmp_path: Path) -> None:
    source = VALID_TEMPLATE + "x" * MAX_TEMPLATE_BYTES

    with pytest.raises(TemplateError, match="too large"):
        validate_template(_template(tmp_path, source))


def test_syntax_error_is_reported_with_line(tmp_path: Path) -> None:
    path = _template(tmp_path, "{{ chunk_index }}\n{% for file in files %}\n")

    with pytest.raises(TemplateError, match="syntax error on line"):
        validate_template(path)


def test_missing_required_variables(tmp_path: Path) -> None:
    path = _template(tmp_path, "Chunk {{ chunk_index }}\n")

    with pytest.raises(TemplateError) as excinfo:
        validate_template(path)

    assert "total_chunks, files" in excinfo.value.reason


def test_unused_optional_variables_are_logged(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level("DEBUG", logger="repo_chunker.output.templates"):
        validate_template(_template(tmp_path, VALID_TEMPLATE))

    assert "does not use optional variable custom" in caplog.text


def test_template_renderer_context() -> None:
    source = (
        "{{ chunk_index }} of {{ total_chunks }} ({{ chunk_files }} files, {{ total_tokens }})\n"
        "{% for file in files %}{{ file.label }}: {{ file.content | xml_escape }}{% endfor %}"
        "{{ custom.project }} {{ metadata.format }} {{ task.id }}"
    )
    renderer = TemplateRenderer(
        source,
        OutputFormat.XML,
        task=get_task_preset(TaskKind.REFACTORING),
        custom={"project": "demo"},
    )

    rendered = renderer.render(_chunk(), 4)

    assert rendered == (
        "1 of 4 (2 files, 5)\n"
        "src/lib.rs: fn a() {}\nnotes.txt (part 2): a &amp; b\n"
        "demo xml refactoring"
    )


def test_template_filters() -> None:
    source = (
        "{% for file in files %}{{ file.path | detect_language }};{% endfor %}"
        "{{ custom.body | truncate_lines(max=2) }}|{{ custom.meta | json_encode }}"
        "{{ chunk_index }}{{ total_chunks }}"
    )
    renderer = TemplateRenderer(
        source, OutputFormat.MARKDOWN, custom={"body": "a\nb\nc\nd", "meta": {"k": 1}}
    )

    rendered = renderer.render(_chunk(), 1)

    assert rendered == 'rust;;a\nb\n... (2 more lines omitted)|{"k": 1}11'


def test_undefined_variable_fails_at_render() -> None:
    renderer = TemplateRenderer(
        "{{ chunk_index }}{{ total_chunks }}{{ files }}{{ custom.missing }}",
        OutputFormat.MARKDOWN,
        name="strict.j2",
    )

    with pytest.raises(TemplateError, match="strict.j2"):
        renderer.render(_chunk(), 1)


def test_build_renderer_precedence(tmp_path: Path) -> None:
    path = _template(tmp_path, VALID_TEMPLATE)

    templated = build_renderer(OutputConfig(template_path=str(path), task=TaskKind.DOCUMENTATION))
    tasked = build_renderer(OutputConfig(task=TaskKind.DOCUMENTATION, format=OutputFormat.JSON))

    assert isinstance(templated, TemplateRenderer)
    assert isinstance(tasked, TaskRenderer)
    assert tasked.format is OutputFormat.JSON


def test_writer_uses_custom_template(tmp_path: Path) -> None:
    path = _template(tmp_path, VALID_TEMPLATE)
    config = OutputConfig(
        output_dir=str(tmp_path / "out"), format=OutputFormat.JSON, template_path=str(path)
    )

    written = ChunkWriter(config).write([_chunk()])

    assert [item.name for item in written] == ["prompt_001.json"]
    assert written[0].read_text(encoding="utf-8") == (
        "Chunk 1/1\nsrc/lib.rs|rust|1\nnotes.txt||1\n"
    )


def test_writer_frames_chunks_for_task(tmp_path: Path) -> None:
    config = OutputConfig(
        output_dir=str(tmp_path), format=OutputFormat.JSON, task=TaskKind.TEST_GENERATION
    )

    written = ChunkWriter(config).write([_chunk()])

    payload = json.loads(written[0].read_text(encoding="utf-8"))
    assert payload["task"]["id"] == "test-generation"
    assert "Generate comprehensive tests for this codebase." in payload["user_prompt"]
