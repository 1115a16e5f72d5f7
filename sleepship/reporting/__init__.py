"""Run reports: pull-request text and failure details."""

from sleepship.reporting.failure import format_failure_report
from sleepship.reporting.pull_request import generate_pr_body, generate_pr_title, strip_task_number

__all__ = ["format_failure_report", "generate_pr_body", "generate_pr_title", "strip_task_number"]
