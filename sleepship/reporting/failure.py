"""Bilingual (English / Japanese) report printed when a task gives up."""

from sleepship.core.state import AttemptKind, TaskOutcome

_RULE = "=" * 40


def format_failure_report(
    outcome: TaskOutcome,
    total: int,
    command: str = "",
) -> str:
    """
    Describe a failed task.

    Args:
        outcome: Final outcome of the task.
        total: Number of tasks in the document.
        command: Verification command, shown for verification failures.

    Returns:
        Multi-line report.
    """
    verification = outcome.failed_phase is AttemptKind.VERIFICATION

    if verification:
        headline = (
            f"Task failed (verification): task {outcome.task_number} (\"{outcome.title}\") "
            f"still failed verification after {outcome.attempts} attempts\n"
            f"タスク {outcome.task_number} (\"{outcome.title}\") の検証が "
            f"{outcome.attempts} 回の試行後も失敗しました"
        )
        details = "[Verification failure details / 検証失敗の詳細]"
    else:
        headline = (
            f"Task failed: task {outcome.task_number} (\"{outcome.title}\") "
            f"still failed after {outcome.attempts} attempts\n"
            f"タスク {outcome.task_number} (\"{outcome.title}\") が "
            f"{outcome.attempts} 回の試行後も失敗しました"
        )
        details = "[Failure details / 失敗の詳細]"

    lines = [
        _RULE,
        headline,
        _RULE,
        details,
        f"  Task / タスク番号: {outcome.task_number}/{total}",
        f"  Title / タスク名: {outcome.title}",
        f"  Phase / フェーズ: {(outcome.failed_phase or AttemptKind.IMPLEMENTATION).value}",
    ]
    if verification and command:
        lines.append(f"  Command / 検証コマンド: {command}")
    lines += [
        f"  Attempts / 試行回数: {outcome.attempts}",
        f"  Error / エラー内容: {outcome.error_detail.strip() or 'unknown'}",
        "",
        "Stopping execution; no retries left.",
        "実行を停止します。リトライ不可。",
    ]
    return "\n".join(lines)
