"""Tests for the shared source issue log."""

from __future__ import annotations

import threading

import pytest

from logdeck.issues import IssueLog


def test_issue_log_keeps_most_recent_and_counts_all() -> None:
    issues = IssueLog(capacity=2)
    issues.report("a", "parse", "one")
    issues.report("a", "parse", "two")
    issues.report("b", "failed", "three")

    assert issues.total == 3
    assert len(issues) == 2
    assert [issue.message for issue in issues.snapshot()] == ["two", "three"]


def test_issue_text_is_cleaned_for_display() -> None:
    issue = IssueLog().report("app\x1b[31m.log", "parse", "bad\nline token=abc123")
    assert issue.source == "app.log"
    assert "\n" not in issue.message
    assert "abc123" not in issue.message


def test_reports_from_many_threads_are_all_counted() -> None:
    issues = IssueLog(capacity=10)

    def _report() -> None:
        for n in range(100):
            issues.report("t", "enqueue", f"record {n}")

    threads = [threading.Thread(target=_report) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert issues.total == 400
    assert len(issues) == 10


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError):
        IssueLog(capacity=0)
