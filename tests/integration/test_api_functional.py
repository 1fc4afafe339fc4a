from pathlib import Path

from fastapi.testclient import TestClient

from repo_chunker.api.main import app


def _repo(tmp_path: Path) -> Path:
    repo = tmp_path / "repo"
    (repo / "src").mkdir(parents=True)
    (repo / "src" / "lib.rs").write_text(
        "// header\nfn a() {}\n\n#[test]\nfn t() {}\n", encoding="utf-8"
    )
    (repo / "src" / "big.py").write_text("value = 1\n" * 40, encoding="utf-8")
    return repo


def test_health_lists_languages() -> None:
    client = TestClient(app)

    resp = client.get("/health")

    assert resp.status_code == 200
    payload = resp.json()
    assert payload["status"] == "ok"
    assert "rust" in payload["languages"]
    assert payload["estimators"] == ["simple", "enhanced"]


def test_filter_endpoint() -> None:
    client = TestClient(app)

    resp = client.post(
        "/filter",
        json={
            "content": "// hi\ncode()\n\n\n",
            "language": "c",
            "policy": {
                "remove_comments": True,
                "remove_blank_lines": True,
                "preserve_headers": False,
            },
        },
    )

    assert resp.status_code == 200
    assert resp.json() == {
        "language": "c",
        "content": "code()\n",
        "tokens": 2,
        "original_tokens": 4,
    }


def test_filter_detects_language_from_path() -> None:
    client = TestClient(app)

    resp = client.post("/filter", json={"content": "x = 1  # note\n", "path": "pkg/mod.py"})

    assert resp.status_code == 200
    assert resp.json()["language"] == "python"


def test_filter_rejects_unknown_language() -> None:
    client = TestClient(app)

    resp = client.post("/filter", json={"content": "x", "language": "cobol"})

    assert resp.status_code == 422


def test_estimate_endpoint() -> None:
    client = TestClient(app)

    simple = client.post("/estimate", json={"text": "abcd"})
    enhanced = client.post("/estimate", json={"text": "hello world", "estimator": "enhanced"})

    assert simple.json() == {"estimator": "simple", "tokens": 1}
    assert enhanced.json() == {"estimator": "enhanced", "tokens": 3}


def test_chunk_endpoint_and_metrics(tmp_path: Path) -> None:
    client = TestClient(app)
    repo = _repo(tmp_path)

    resp = client.post(
        "/chunk",
        json={"path": str(repo), "max_tokens": 40, "overlap_tokens": 5},
    )

    assert resp.status_code == 200
    payload = resp.json()
    assert payload["summary"]["processed_files"] == 2
    assert payload["summary"]["total_chunks"] == len(payload["chunks"])
    entries = [entry for item in payload["chunks"] for entry in item["entries"]]
    assert entries[0]["label"] == "src/big.py (part 1)"
    assert all(item["tokens"] <= 40 for item in payload["chunks"])
    rust = [entry for entry in entries if entry["path"] == "src/lib.rs"]
    assert "#[test]" not in rust[0]["content"]
    assert not (repo / "out").exists()

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert metrics.json()["total_runs"] >= 1


def test_chunk_without_content(tmp_path: Path) -> None:
    client = TestClient(app)

    resp = client.post("/chunk", json={"path": str(_repo(tmp_path)), "include_content": False})

    assert resp.status_code == 200
    entries = resp.json()["chunks"][0]["entries"]
    assert all("content" not in entry for entry in entries)


def test_chunk_rejects_bad_budget(tmp_path: Path) -> None:
    client = TestClient(app)

    resp = client.post(
        "/chunk", json={"path": str(tmp_path), "max_tokens": 10, "overlap_tokens": 10}
    )

    assert resp.status_code == 400
    assert "overlap_tokens" in resp.json()["detail"]


def test_chunk_missing_directory(tmp_path: Path) -> None:
    client = TestClient(app)

    resp = client.post("/chunk", json={"path": str(tmp_path / "missing")})

    assert resp.status_code == 404


def test_tasks_endpoint() -> None:
    client = TestClient(app)

    resp = client.get("/tasks")

    assert resp.status_code == 200
    ids = [item["id"] for item in resp.json()]
    assert ids[0] == "code-review"
    assert len(ids) == 10


def test_chunk_rendered_for_task(tmp_path: Path) -> None:
    client = TestClient(app)

    resp = client.post(
        "/chunk",
        json={
            "path": str(_repo(tmp_path)),
            "task": "performance-analysis",
            "include_rendered": True,
        },
    )

    assert resp.status_code == 200
    rendered = resp.json()["chunks"][0]["rendered"]
    assert rendered.startswith("# Performance Analysis: chunk 1 of 1\n")
    assert "Analyze performance characteristics of this codebase." in rendered


def test_chunk_rejects_unknown_task(tmp_path: Path) -> None:
    client = TestClient(app)

    resp = client.post("/chunk", json={"path": str(_repo(tmp_path)), "task": "poetry"})

    assert resp.status_code == 422
