"""
Tests for the amend command line.
"""

import json

import pytest
import structlog

from amend.cli import main


@pytest.fixture(autouse=True)
def _reset_logging():
    # main() points structlog at the captured stderr of the running test
    yield
    structlog.reset_defaults()


def _write(path, text):
    path.write_text(text, encoding="utf-8")
    return path


def _doc_file(path, text):
    doc = {"type": "doc", "content": [{"type": "paragraph", "content": [{"type": "text", "text": text}]}]}
    path.write_text(json.dumps(doc), encoding="utf-8")
    return path


def test_merge_defaults(tmp_path, capsys):
    current = _write(tmp_path / "current.md", "- A\n- B\n- C")
    proposed = _write(tmp_path / "proposed.md", "- B\n- C\n- A")

    main(["merge", str(current), str(proposed)])
    assert capsys.readouterr().out == "- B\n- C\n- A\n"


def test_merge_toggle_and_reject(tmp_path, capsys):
    current = _write(tmp_path / "current.md", "- A\n- B\n- C")
    proposed = _write(tmp_path / "proposed.md", "- B\n- C\n- A")

    main(["merge", str(current), str(proposed), "--toggle", "3"])
    assert capsys.readouterr().out == "- A\n- B\n- C\n"

    out_path = tmp_path / "merged.md"
    main(["merge", str(current), str(proposed), "--reject-all", "-o", str(out_path)])
    assert out_path.read_text(encoding="utf-8") == "- A\n- B\n- C"


def test_diff_json(tmp_path, capsys):
    current = _write(tmp_path / "current.md", "- A\n- B\n- C")
    proposed = _write(tmp_path / "proposed.md", "- B\n- C\n- A")

    main(["diff", str(current), str(proposed), "--json"])
    data = json.loads(capsys.readouterr().out)

    assert data["representation"] == "list"
    assert [op["kind"] for op in data["ops"]] == ["del", "eq", "eq", "add"]
    assert data["pairs"] == [{"from_index": 0, "to_index": 3, "text": "- A"}]


def test_diff_listing(tmp_path, capsys):
    current = _write(tmp_path / "current.md", "Line A\nLine B\nLine C")
    proposed = _write(tmp_path / "proposed.md", "Line A\nLine X\nLine C")

    main(["diff", str(current), str(proposed)])
    out = capsys.readouterr().out.splitlines()
    assert out == ["   0   Line A", "   1 - Line B", "   2 + Line X", "   3   Line C"]


def test_apply_writes_document(tmp_path, capsys):
    doc = _doc_file(tmp_path / "doc.json", "Total: 10 items. Total: 10 items.")
    ops = _write(
        tmp_path / "ops.json",
        json.dumps([{"type": "anchoredReplace", "anchor": "Total: ", "delete": "10", "insert": "20"}]),
    )
    out_path = tmp_path / "out.json"

    main(["apply", str(doc), str(ops), "--caret", "20", "-o", str(out_path)])

    result = json.loads(out_path.read_text(encoding="utf-8"))
    assert result["content"][0]["content"][0]["text"] == "Total: 10 items. Total: 20 items."
    assert "1 applied, 0 skipped" in capsys.readouterr().err


def test_apply_exits_nonzero_when_skipped(tmp_path):
    doc = _doc_file(tmp_path / "doc.json", "Hello")
    ops = _write(tmp_path / "ops.json", json.dumps([{"type": "anchoredReplace", "anchor": "Bye", "insert": "x"}]))

    with pytest.raises(SystemExit) as exc_info:
        main(["apply", str(doc), str(ops), "-o", str(tmp_path / "out.json")])
    assert exc_info.value.code == 1


def test_rewrite_and_text(tmp_path, capsys):
    doc = _doc_file(tmp_path / "doc.json", "Hello world")
    text = _write(tmp_path / "new.txt", "Hello there\n")
    out_path = tmp_path / "out.json"

    main(["rewrite", str(doc), str(text), "-o", str(out_path)])
    capsys.readouterr()

    main(["text", str(out_path)])
    assert capsys.readouterr().out == "Hello there\n"


def test_missing_file_exits(tmp_path):
    with pytest.raises(SystemExit) as exc_info:
        main(["merge", str(tmp_path / "nope.md"), str(tmp_path / "nope2.md")])
    assert exc_info.value.code == 1


def test_version(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(["--version"])
    assert exc_info.value.code == 0
    assert capsys.readouterr().out.startswith("amend ")
