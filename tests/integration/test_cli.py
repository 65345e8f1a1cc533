"""Integration tests for the kiln CLI.

Validation is disabled so these run without a JS engine.
"""

import json

import pytest

from kiln.cli.main import main


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Run every command in an empty directory so no kiln.json is picked up."""
    monkeypatch.chdir(tmp_path)
    for name in ("CACHE_FILE", "CACHE_MAX_ENTRIES", "PREPARER_DIRECTORY", "PREPARER_SHIMS",
                 "RUNTIME_PACKAGE", "PIPELINE_USE_CACHE", "PIPELINE_VALIDATE"):
        monkeypatch.delenv(name, raising=False)


class TestCompileCommand:
    """Tests for `kiln compile`."""

    def test_compile_inline_json(self, tmp_path, capsys):
        source = tmp_path / "card.jsx"
        source.write_text("const Card = () => { useEffect(() => {}); return <div/>; };\n")

        code = main(["compile", str(source), "--no-validate", "--json"])

        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["success"] is True
        assert data["artifact"]["format"] == "inline"
        assert data["artifact"]["component_name"] == "Card"
        assert data["artifact"]["transformed_text"].startswith("const { useEffect } = React;\n")
        assert data["artifact"]["validation_status"] == "skipped"

    def test_compile_writes_loadable_code(self, tmp_path, capsys):
        source = tmp_path / "card.jsx"
        source.write_text("const Card = () => <b>hi</b>;\n")
        out = tmp_path / "card.js"

        code = main(["compile", str(source), "--no-validate", "--out", str(out)])

        assert code == 0
        assert out.read_text() == 'const Card = () => React.createElement("b", null, "hi");\nreturn Card;\n'
        printed = capsys.readouterr().out
        assert "Format: inline" in printed
        assert "Component: Card" in printed

    def test_compile_error_exit_code(self, tmp_path, capsys):
        source = tmp_path / "broken.jsx"
        source.write_text("const Broken = () => <div><span></div>;\n")

        code = main(["compile", str(source), "--no-validate"])

        assert code == 1
        assert "CompileError" in capsys.readouterr().out

    def test_declared_format_mismatch_warns(self, tmp_path, capsys):
        source = tmp_path / "card.jsx"
        source.write_text("const Card = () => <b/>;\n")

        code = main(["compile", str(source), "--no-validate", "--format", "standard-module"])

        assert code == 0
        assert "ClassificationAmbiguous" in capsys.readouterr().out

    def test_missing_input(self, tmp_path, capsys):
        assert main(["compile", str(tmp_path / "missing.jsx")]) == 1
        assert "Input file not found" in capsys.readouterr().err


class TestWarmCommand:
    """Tests for `kiln warm`."""

    def test_warm_persists_cache(self, tmp_path, capsys):
        (tmp_path / "card.jsx").write_text("const Card = () => <div/>;\n")
        (tmp_path / "badge.mjs").write_text("export default function Badge() { return null; }\n")
        manifest = tmp_path / "manifest.yaml"
        manifest.write_text(
            "components:\n"
            "  - file: card.jsx\n"
            "  - file: badge.mjs\n"
        )
        cache_file = tmp_path / "cache.json"

        code = main(["warm", str(manifest), "--cache", str(cache_file), "--no-validate"])

        assert code == 0
        assert "Compiled: 2/2" in capsys.readouterr().out
        data = json.loads(cache_file.read_text())
        assert len(data["entries"]) == 2

    def test_warm_reports_failures(self, tmp_path, capsys):
        (tmp_path / "broken.jsx").write_text("const Broken = () => <div>;\n")
        manifest = tmp_path / "manifest.yaml"
        manifest.write_text("components:\n  - file: broken.jsx\n")

        code = main(["warm", str(manifest), "--no-validate"])

        assert code == 1
        assert "Compile errors: 1" in capsys.readouterr().out

    def test_bad_manifest(self, tmp_path, capsys):
        manifest = tmp_path / "manifest.yaml"
        manifest.write_text("items: []\n")

        assert main(["warm", str(manifest)]) == 1
        assert "components" in capsys.readouterr().err
