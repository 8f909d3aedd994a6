"""Churn rate: how often a file was committed within the history window."""


def compute_file_churn(churn: dict[str, int], relative_path: str, history_days: int) -> float:
    """Commits per day scaled so that one commit a day saturates at 100."""
    count = churn.get(relative_path, 0)
    daily_rate = count / max(history_days, 1)
    return min(100.0, daily_rate * 100.0)
