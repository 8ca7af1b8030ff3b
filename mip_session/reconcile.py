from enum import Enum
from typing import Iterable, List, Mapping, Optional

from mip_core.logging import get_logger
from .dto import (
    AnswerRecord,
    ConversationHistoryEntry,
    DegradationReason,
    DegradedEvaluation,
    Question,
    Session,
)

logger = get_logger("mip.session.reconcile")


class MatchStrategy(str, Enum):
    """
    How history entries are matched to the canonical question list.
    INDEX uses the question's ordinal position.
    TEXT compares display text (first match wins), so two questions with
    identical text both resolve to the earliest matching entry.
    """
    INDEX = "INDEX"
    TEXT = "TEXT"


def _find_entry(
    history: List[ConversationHistoryEntry],
    index: int,
    question: Question,
    strategy: MatchStrategy,
) -> Optional[ConversationHistoryEntry]:
    for entry in history:
        if strategy == MatchStrategy.INDEX and entry.question_index == index:
            return entry
        if strategy == MatchStrategy.TEXT and entry.question == question.text:
            return entry
    return None


def reconcile_answers(
    session: Session,
    history: Iterable[ConversationHistoryEntry],
    answers: Mapping[int, AnswerRecord],
    strategy: MatchStrategy = MatchStrategy.INDEX,
) -> List[AnswerRecord]:
    """
    Build exactly one AnswerRecord per question, in question order.

    - answered entry   -> ledger record (or one rebuilt from the entry)
    - skipped / empty  -> unanswered, reached
    - no entry         -> unanswered, never reached
    """
    history = list(history)
    records: List[AnswerRecord] = []

    for index, question in enumerate(session.questions):
        entry = _find_entry(history, index, question, strategy)

        if entry is None:
            records.append(AnswerRecord.skipped(index, question, reached=False))
            continue

        if not entry.has_answer:
            records.append(AnswerRecord.skipped(index, question, reached=True))
            continue

        record = answers.get(entry.question_index)
        if record is None or not record.answered:
            outcome = entry.evaluation or DegradedEvaluation.for_reason(DegradationReason.NOT_EVALUATED)
            record = AnswerRecord.from_outcome(index, question, entry.response or None, outcome)
        elif record.question_index != index:
            record = AnswerRecord.from_outcome(index, question, record.transcript, record.outcome)

        records.append(record)

    answered = sum(1 for r in records if r.answered)
    logger.info(f"Reconciled {len(records)} questions ({answered} answered, strategy={strategy.value})")
    return records
