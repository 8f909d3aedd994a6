"""Knowledge concentration from blame line attribution."""

from typing import Optional


def top_author(authors: dict[str, int]) -> Optional[tuple[str, float]]:
    """(author, share of lines) for the largest contributor, or None."""
    total = sum(authors.values())
    if total <= 0:
        return None
    name, lines = max(authors.items(), key=lambda item: item[1])
    return name, lines / total


def compute_knowledge_concentration(blame: dict[str, dict[str, int]], relative_path: str) -> float:
    """0 while the top author owns at most half the lines, 100 at full ownership."""
    top = top_author(blame.get(relative_path, {}))
    if top is None:
        return 0.0
    share = top[1]
    if share <= 0.5:
        return 0.0
    return min(100.0, (share - 0.5) / 0.5 * 100.0)
