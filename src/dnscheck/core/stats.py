"""Ordering and summary statistics for lookup answers."""

from typing import Iterable

from dnscheck.core.models import AnswerCount, AnswerRecord, Stats


def rank_key(answer: AnswerRecord) -> tuple[bool, bool, str]:
    """Sort key: errors first, then mismatches, then by query name."""
    return (answer.error is None, answer.is_match, answer.query)


def rank(answers: Iterable[AnswerRecord]) -> list[AnswerRecord]:
    """Return answers ordered for triage, failures and mismatches first."""
    return sorted(answers, key=rank_key)


def _pct(part: int, total: int) -> float:
    if total == 0:
        return 0.0

    return part / total * 100


def compute_stats(answers: Iterable[AnswerRecord]) -> Stats:
    """
    Compute match rates and the most common returned values.

    Errored answers count as unmatched and also towards ``errored_pct``.
    Returned values of errored answers are not counted. With no answers
    every percentage is 0.
    """
    answers = list(answers)
    total = len(answers)

    matched = sum(1 for a in answers if a.is_match)
    errored = sum(1 for a in answers if a.error is not None)

    # dicts keep first-seen order, which breaks ties below
    counts: dict[str, int] = {}

    for answer in answers:
        if answer.error is not None:
            continue

        for value in answer.raw_values:
            counts[value] = counts.get(value, 0) + 1

    frequency = [
        AnswerCount(value=value, count=count, pct=_pct(count, total))
        for value, count in counts.items()
    ]
    frequency.sort(key=lambda c: c.pct, reverse=True)

    return Stats(
        matched_pct=_pct(matched, total),
        unmatched_pct=_pct(total - matched, total),
        errored_pct=_pct(errored, total),
        answer_frequency=frequency,
    )
