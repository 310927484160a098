from datetime import timezone

from tickunit.failures import FailureRecord
from tickunit.result import RunStatus, TestResult
from tickunit.attribution import SourceLocation


def _record(message="boom"):
    return FailureRecord.build(
        message,
        owner="tests.PlayerTests",
        method="test_jump",
        location=SourceLocation(file="/project/tests/test_player.py", line=9),
    )


def test_new_result_passes():
    result = TestResult()
    assert result.passed is True
    assert result.status is RunStatus.PASSED
    assert result.started_at is None
    assert result.failures == []


def test_test_started_records_utc_timestamp():
    result = TestResult()
    result.test_started()
    assert result.started_at is not None
    assert result.started_at.tzinfo is timezone.utc


def test_test_failed_appends_in_order():
    result = TestResult()
    first, second = _record("first"), _record("second")
    result.test_failed(first)
    result.test_failed(second)
    assert result.failures == [first, second]
    assert result.passed is False
    assert result.status is RunStatus.FAILED


def test_failure_record_description_includes_location():
    record = _record()
    assert record.description == (
        "Failed: tests.PlayerTests.test_jump() in File: test_player.py on Line: 9"
    )


def test_failure_record_description_without_location():
    record = FailureRecord.build("boom", owner="tests.PlayerTests", method="test_jump", location=None)
    assert record.description == "Failed: tests.PlayerTests.test_jump()"
    assert record.to_dict()["file"] is None


def test_to_dict():
    result = TestResult()
    result.test_started()
    result.test_failed(_record())
    data = result.to_dict()
    assert data["status"] == "failed"
    assert data["failures"][0]["line"] == 9
    assert data["started_at"].endswith("+00:00")
