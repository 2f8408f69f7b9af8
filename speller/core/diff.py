"""
Letter-level spelling diff.

Damerau-Levenshtein alignment (optimal string alignment variant) between the
target word and what the learner typed. The backtrace classifies every step
as a match, substitution, omission, addition or transposition so the UI and
the lesson matcher can explain exactly what went wrong.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from speller.core.models import DiffOpType


@dataclass(frozen=True)
class DiffOp:
    """
    One aligned step between target and attempt.

    Transpositions carry two characters on each side and start at the first
    of the two swapped positions. Additions have no target-side character,
    omissions no attempt-side character.
    """
    type: DiffOpType
    correct_char: str | None = None
    user_char: str | None = None
    correct_index: int | None = None
    user_index: int | None = None

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "correct_char": self.correct_char,
            "user_char": self.user_char,
            "correct_index": self.correct_index,
            "user_index": self.user_index,
        }


@dataclass
class DiffSummary:
    """Counts of every non-match operation."""
    substitutions: int = 0
    omissions: int = 0
    additions: int = 0
    transpositions: int = 0

    @property
    def total(self) -> int:
        return self.substitutions + self.omissions + self.additions + self.transpositions

    def to_dict(self) -> dict:
        return {
            "substitutions": self.substitutions,
            "omissions": self.omissions,
            "additions": self.additions,
            "transpositions": self.transpositions,
        }


@dataclass
class DiffResult:
    ops: list[DiffOp] = field(default_factory=list)
    summary: DiffSummary = field(default_factory=DiffSummary)

    @property
    def error_ops(self) -> list[DiffOp]:
        return [op for op in self.ops if op.type != DiffOpType.MATCH]

    def correct_side(self) -> str:
        """Target word rebuilt from the ops."""
        return "".join(op.correct_char or "" for op in self.ops if op.type != DiffOpType.ADDITION)

    def user_side(self) -> str:
        """Attempt rebuilt from the ops."""
        return "".join(op.user_char or "" for op in self.ops if op.type != DiffOpType.OMISSION)

    def to_dict(self) -> dict:
        return {
            "ops": [op.to_dict() for op in self.ops],
            "summary": self.summary.to_dict(),
        }


def _cost_table(c: Sequence[str], u: Sequence[str]) -> list[list[int]]:
    m, n = len(c), len(u)
    dp = [[0] * (n + 1) for _ in range(m + 1)]
    for i in range(m + 1):
        dp[i][0] = i
    for j in range(n + 1):
        dp[0][j] = j

    for i in range(1, m + 1):
        for j in range(1, n + 1):
            cost = 0 if c[i - 1] == u[j - 1] else 1
            dp[i][j] = min(
                dp[i - 1][j] + 1,         # omission
                dp[i][j - 1] + 1,         # addition
                dp[i - 1][j - 1] + cost,  # match / substitution
            )
            if i > 1 and j > 1 and c[i - 1] == u[j - 2] and c[i - 2] == u[j - 1]:
                dp[i][j] = min(dp[i][j], dp[i - 2][j - 2] + cost)
    return dp


def compute_diff(correct: str, attempt: str) -> DiffResult:
    """
    Align `attempt` against `correct`, case-insensitively.

    Characters in the emitted ops keep their original case. Backtrace
    preference: match, then transposition, then the cheapest of
    substitution / omission / addition (ties resolved in that order).

    Args:
        correct: The target spelling
        attempt: What the learner typed

    Returns:
        DiffResult with ops in target order and per-type counts
    """
    # Fold per character so positions line up with the original strings
    c = [ch.lower() for ch in correct]
    u = [ch.lower() for ch in attempt]
    dp = _cost_table(c, u)

    ops: list[DiffOp] = []
    i, j = len(c), len(u)
    while i > 0 or j > 0:
        if i > 0 and j > 0 and c[i - 1] == u[j - 1]:
            ops.append(DiffOp(DiffOpType.MATCH, correct[i - 1], attempt[j - 1], i - 1, j - 1))
            i -= 1
            j -= 1
            continue

        if (
            i > 1
            and j > 1
            and c[i - 1] == u[j - 2]
            and c[i - 2] == u[j - 1]
            and dp[i][j] == dp[i - 2][j - 2] + 1
        ):
            ops.append(
                DiffOp(
                    DiffOpType.TRANSPOSITION,
                    correct[i - 2 : i],
                    attempt[j - 2 : j],
                    i - 2,
                    j - 2,
                )
            )
            i -= 2
            j -= 2
            continue

        here = dp[i][j]
        if i > 0 and j > 0 and dp[i - 1][j - 1] + 1 == here:
            ops.append(DiffOp(DiffOpType.SUBSTITUTION, correct[i - 1], attempt[j - 1], i - 1, j - 1))
            i -= 1
            j -= 1
        elif i > 0 and (j == 0 or dp[i - 1][j] + 1 == here):
            ops.append(DiffOp(DiffOpType.OMISSION, correct_char=correct[i - 1], correct_index=i - 1))
            i -= 1
        else:
            ops.append(DiffOp(DiffOpType.ADDITION, user_char=attempt[j - 1], user_index=j - 1))
            j -= 1

    ops.reverse()

    summary = DiffSummary()
    for op in ops:
        if op.type == DiffOpType.SUBSTITUTION:
            summary.substitutions += 1
        elif op.type == DiffOpType.OMISSION:
            summary.omissions += 1
        elif op.type == DiffOpType.ADDITION:
            summary.additions += 1
        elif op.type == DiffOpType.TRANSPOSITION:
            summary.transpositions += 1

    return DiffResult(ops=ops, summary=summary)


def _plural(count: int, one: str, many: str) -> str:
    return one if count == 1 else f"{count} {many}"


def describe_errors(summary: DiffSummary) -> str:
    """
    Human-readable description of a diff summary.

    e.g. "swapped letters, 2 wrong letters and missing letter"
    """
    parts: list[str] = []
    if summary.transpositions:
        parts.append(_plural(summary.transpositions, "swapped letters", "letter swaps"))
    if summary.substitutions:
        parts.append(_plural(summary.substitutions, "wrong letter", "wrong letters"))
    if summary.omissions:
        parts.append(_plural(summary.omissions, "missing letter", "missing letters"))
    if summary.additions:
        parts.append(_plural(summary.additions, "extra letter", "extra letters"))

    if not parts:
        return ""
    if len(parts) == 1:
        return parts[0]
    return ", ".join(parts[:-1]) + " and " + parts[-1]
