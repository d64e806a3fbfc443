"""
Tests for CLI Module.
=====================

Tests for the commands that need no embedding provider:
- validate: Project data checks and exit status
- extract: Content export reduction
"""

import json
from pathlib import Path

from typer.testing import CliRunner

runner = CliRunner()


class TestValidateCommand:
    """Tests for `embeddings-eval validate`."""

    def test_all_valid(self, project_dir: Path):
        from embeddings_evaluator.cli.main import app

        result = runner.invoke(app, ["validate", "--projects-dir", str(project_dir.parent)])

        assert result.exit_code == 0
        assert "courses-en: valid" in result.output

    def test_invalid_project_fails(self, project_dir: Path):
        from embeddings_evaluator.cli.main import app

        (project_dir / "content.json").write_text('{"not": "an array"}', encoding="utf-8")

        result = runner.invoke(app, ["validate", "--projects-dir", str(project_dir.parent)])

        assert result.exit_code == 1
        assert "content.json must be an array" in result.output

    def test_no_projects(self, temp_dir: Path):
        from embeddings_evaluator.cli.main import app

        result = runner.invoke(app, ["validate", "--projects-dir", str(temp_dir)])

        assert result.exit_code == 1
        assert "No projects found" in result.output


class TestExtractCommand:
    """Tests for `embeddings-eval extract`."""

    def test_extract(self, temp_dir: Path):
        from embeddings_evaluator.cli.main import app

        source = temp_dir / "export.json"
        target = temp_dir / "out" / "content.json"
        source.write_text(
            json.dumps([{"id": 7, "title": "News", "description": "Text", "author": "someone"}]),
            encoding="utf-8",
        )

        result = runner.invoke(app, ["extract", "--in", str(source), "--out", str(target)])

        assert result.exit_code == 0
        assert json.loads(target.read_text(encoding="utf-8")) == [
            {"id": 7, "title": "News", "description": "Text"}
        ]

    def test_missing_input(self, temp_dir: Path):
        from embeddings_evaluator.cli.main import app

        result = runner.invoke(
            app, ["extract", "--in", str(temp_dir / "missing.json"), "--out", str(temp_dir / "o.json")]
        )

        assert result.exit_code == 1
        assert not (temp_dir / "o.json").exists()

    def test_input_not_array(self, temp_dir: Path):
        from embeddings_evaluator.cli.main import app

        source = temp_dir / "export.json"
        source.write_text('{"id": 1}', encoding="utf-8")

        result = runner.invoke(app, ["extract", "--in", str(source), "--out", str(temp_dir / "o.json")])

        assert result.exit_code == 1
