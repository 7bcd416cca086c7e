"""
Tests for the gridprompt command-line interface.
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pandas as pd
import pytest

from gridprompt.cli.main import main
from gridprompt.client import GenerateResponse
from gridprompt.errors import TransportError

COLUMNS = [
    {"name": "employees", "type": "number", "description": "Headcount"},
    {"name": "offices", "type": "array", "nestedColumns": [{"name": "city"}]},
]


class FakeGeminiClient:
    """Stands in for GeminiClient inside the run command."""

    instances: list[FakeGeminiClient] = []

    def __init__(self, api_key, model, enable_web_search):
        self.api_key = api_key
        self.model = model
        self.enable_web_search = enable_web_search
        self.prompts: list[str] = []
        FakeGeminiClient.instances.append(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    async def generate(self, prompt):
        self.prompts.append(prompt)
        if "Broken" in prompt:
            raise TransportError("Gemini API error 500", status_code=500)
        return GenerateResponse(
            text='```json\n{"employees": 10, "offices": [{"city": "Tokyo"}, {"city": "Osaka"}]}\n```'
        )


@pytest.fixture
def project(tmp_path: Path, monkeypatch):
    """Working directory with an input CSV, template and column file."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "companies.csv").write_text("name,country\nAcme,JP\nBroken,US\n", encoding="utf-8")
    (tmp_path / "prompt.txt").write_text("Research {{name}} in {{country}}.", encoding="utf-8")
    (tmp_path / "columns.json").write_text(json.dumps(COLUMNS), encoding="utf-8")
    FakeGeminiClient.instances = []
    return tmp_path


def run_args(*extra):
    return [
        "run",
        "companies.csv",
        "-t",
        "prompt.txt",
        "-c",
        "columns.json",
        "-o",
        "out",
        "--name",
        "results",
        *extra,
    ]


class TestRunCommand:
    """Test gridprompt run."""

    def test_run_writes_results(self, cli_runner, project):
        with patch("gridprompt.cli.run.GeminiClient", FakeGeminiClient):
            result = cli_runner.invoke(
                main, run_args("--concurrency", "2"), env={"GEMINI_API_KEY": "k"}
            )

        assert result.exit_code == 0, result.output
        success = pd.read_csv(project / "out" / "results.csv")
        assert success.to_dict(orient="records") == [
            {"name": "Acme", "country": "JP", "employees": 10, "offices_city": "Tokyo"},
            {"name": "Acme", "country": "JP", "employees": 10, "offices_city": "Osaka"},
        ]
        errors = pd.read_csv(project / "out" / "results-errors.csv")
        assert errors.to_dict(orient="records") == [
            {
                "name": "Broken",
                "country": "US",
                "error_message": "Gemini API error 500",
                "row_index": 1,
            }
        ]

        client = FakeGeminiClient.instances[0]
        assert client.api_key == "k"
        assert client.model == "gemini-2.5-flash"
        assert client.enable_web_search is True
        prompt = next(p for p in client.prompts if "Acme" in p)
        assert prompt.startswith("Research Acme in JP.\n\n[Output schema]")
        assert '"employees": number // Headcount' in prompt

    def test_run_json_summary(self, cli_runner, project):
        with patch("gridprompt.cli.run.GeminiClient", FakeGeminiClient):
            result = cli_runner.invoke(
                main,
                run_args("--json", "--no-web-search", "--model", "gemini-x"),
                env={"GEMINI_API_KEY": "k"},
            )

        assert result.exit_code == 0, result.output
        summary = json.loads(result.stdout)
        assert summary["state"] == "completed"
        assert summary["success_count"] == 1
        assert summary["error_count"] == 1
        assert summary["export"]["success_rows"] == 2
        assert FakeGeminiClient.instances[0].enable_web_search is False
        assert FakeGeminiClient.instances[0].model == "gemini-x"

    def test_run_uses_config_file(self, cli_runner, project):
        (project / "gridprompt.config").write_text(
            "ENABLE_WEB_SEARCH=false\nAPI_KEY_ENV=OTHER_KEY\n", encoding="utf-8"
        )
        with patch("gridprompt.cli.run.GeminiClient", FakeGeminiClient):
            result = cli_runner.invoke(main, run_args(), env={"OTHER_KEY": "other"})

        assert result.exit_code == 0, result.output
        assert FakeGeminiClient.instances[0].api_key == "other"
        assert FakeGeminiClient.instances[0].enable_web_search is False

    def test_missing_api_key(self, cli_runner, project):
        with patch("gridprompt.cli.run.GeminiClient", FakeGeminiClient):
            result = cli_runner.invoke(main, run_args(), env={"GEMINI_API_KEY": None})

        assert result.exit_code == 1
        assert "GEMINI_API_KEY" in result.output
        assert FakeGeminiClient.instances == []

    def test_invalid_concurrency(self, cli_runner, project):
        result = cli_runner.invoke(
            main, run_args("--concurrency", "0"), env={"GEMINI_API_KEY": "k"}
        )
        assert result.exit_code == 1
        assert "CONCURRENCY" in result.output

    def test_empty_csv(self, cli_runner, project):
        (project / "companies.csv").write_text("name,country\n", encoding="utf-8")
        result = cli_runner.invoke(main, run_args(), env={"GEMINI_API_KEY": "k"})
        assert result.exit_code == 1
        assert "rows must not be empty" in result.output

    def test_invalid_columns_file(self, cli_runner, project):
        (project / "columns.json").write_text('{"name": "a"}', encoding="utf-8")
        result = cli_runner.invoke(main, run_args(), env={"GEMINI_API_KEY": "k"})
        assert result.exit_code == 1
        assert "JSON list" in result.output


class TestSchemaCommands:
    """Test gridprompt schema and infer-columns."""

    def test_schema_preview(self, cli_runner, project):
        result = cli_runner.invoke(main, ["schema", "columns.json"])

        assert result.exit_code == 0, result.output
        assert result.output.startswith(
            "[Output schema]\nPlease output in the following JSON structure:\n{\n"
        )
        assert '  "offices": [\n    {\n      "city": string\n    }\n  ]' in result.output

    def test_schema_with_template(self, cli_runner, project):
        result = cli_runner.invoke(main, ["schema", "columns.json", "-t", "prompt.txt"])
        assert result.exit_code == 0, result.output
        assert result.output.startswith("Research {{name}} in {{country}}.\n\n[Output schema]")

    def test_infer_columns(self, cli_runner, project):
        (project / "sample.json").write_text(
            json.dumps({"title": "t", "meta": {"year": 2020}}), encoding="utf-8"
        )
        result = cli_runner.invoke(main, ["infer-columns", "sample.json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == [
            {"name": "title", "type": "string"},
            {"name": "meta", "type": "object", "nestedColumns": [{"name": "year", "type": "number"}]},
        ]

    def test_infer_columns_invalid_json(self, cli_runner, project):
        (project / "sample.json").write_text("{nope", encoding="utf-8")
        result = cli_runner.invoke(main, ["infer-columns", "sample.json"])
        assert result.exit_code == 1


class TestInitCommand:
    """Test gridprompt init."""

    def test_creates_config(self, cli_runner, project):
        result = cli_runner.invoke(main, ["init", "--concurrency", "4"])

        assert result.exit_code == 0, result.output
        content = (project / "gridprompt.config").read_text()
        assert "CONCURRENCY=4" in content
        assert 'MODEL="gemini-2.5-flash"' in content

    def test_existing_config_kept(self, cli_runner, project):
        (project / "gridprompt.config").write_text("CONCURRENCY=7\n")
        result = cli_runner.invoke(main, ["init"])

        assert result.exit_code == 0
        assert "already exists" in result.output
        assert (project / "gridprompt.config").read_text() == "CONCURRENCY=7\n"
