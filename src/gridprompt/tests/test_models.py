"""Tests for job models and run records."""

from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from gridprompt.errors import CallTimeoutError, JobValidationError, TransportError
from gridprompt.models import (
    ErrorRow,
    JobInput,
    ProcessedRow,
    ProgressState,
    RunResult,
    RunState,
)


class TestJobInput:
    """Test JobInput validation."""

    def test_defaults(self):
        job = JobInput(rows=[{"a": 1}], prompt_template="{{a}}")
        assert job.concurrency == 3
        assert job.rate_limit_per_minute == 60
        assert job.timeout_ms == 60000
        assert job.timeout_seconds == 60.0
        assert job.output_columns == []

    def test_rejects_empty_rows(self):
        with pytest.raises(ValidationError, match="rows must not be empty"):
            JobInput(rows=[], prompt_template="x")

    def test_rejects_blank_template(self):
        with pytest.raises(ValidationError, match="prompt_template must not be blank"):
            JobInput(rows=[{"a": 1}], prompt_template="\n ")

    def test_nested_columns_from_camel_case(self):
        job = JobInput.model_validate(
            {
                "rows": [{"a": 1}],
                "prompt_template": "x",
                "output_columns": [
                    {"name": "items", "type": "array", "nestedColumns": [{"name": "sku"}]}
                ],
            }
        )
        assert job.output_columns[0].nested_columns[0].name == "sku"

    def test_rejects_unknown_column_type(self):
        with pytest.raises(ValidationError):
            JobInput.model_validate(
                {"rows": [{"a": 1}], "prompt_template": "x", "output_columns": [{"name": "a", "type": "date"}]}
            )


class TestRunResult:
    """Test RunResult accounting."""

    def test_counts_and_summary(self):
        started = datetime(2025, 1, 1, 12, 0, 0)
        result = RunResult(
            state=RunState.ABORTED,
            success=[ProcessedRow(index=0, data={"a": 1}, raw_response="{}")],
            errors=[ErrorRow(index=2, row={"a": 3}, message="down", error_type="transport")],
            progress=ProgressState(completed=2, total=5),
            started_at=started,
            completed_at=started + timedelta(seconds=1.5),
        )

        assert result.success_count == 1
        assert result.error_count == 1
        assert result.skipped_count == 3
        assert result.duration_ms == 1500
        summary = result.to_dict()
        assert summary["state"] == "aborted"
        assert summary["errors"] == [{"index": 2, "error_type": "transport", "message": "down"}]

    def test_processed_row_record(self):
        row = ProcessedRow(index=3, data={"a": 1}, raw_response="raw")
        assert row.to_record() == {"a": 1, "_status": "success", "_raw_response": "raw"}
        assert row.data == {"a": 1}


class TestErrors:
    """Test the error taxonomy."""

    def test_call_errors(self):
        timeout = CallTimeoutError(2.5)
        assert timeout.message == "Request timed out after 2.5s"
        assert timeout.details == {"timeout_s": 2.5}
        assert "type=timeout" in repr(timeout)

        transport = TransportError("HTTP 503", status_code=503)
        assert transport.details == {"status_code": 503}

    def test_job_validation_error(self):
        err = JobValidationError("bad", validation_errors=[{"loc": ["rows"]}])
        assert err.message == "Invalid job: bad"
        assert err.details["validation_errors"] == [{"loc": ["rows"]}]
