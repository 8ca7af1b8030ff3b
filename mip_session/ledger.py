from typing import Dict, List, Optional, Tuple

from mip_core.logging import get_logger
from .dto import AnswerRecord, ConversationHistoryEntry

logger = get_logger("mip.session.ledger")


class SessionLedger:
    """
    In-memory ledger of one session.
    History is append-only and holds at most one entry per question index.
    Answer records are keyed by question index.
    """
    def __init__(self):
        self._history: List[ConversationHistoryEntry] = []
        self._logged_indexes: set = set()
        self._answers: Dict[int, AnswerRecord] = {}

    @property
    def history(self) -> Tuple[ConversationHistoryEntry, ...]:
        return tuple(self._history)

    @property
    def answers(self) -> Dict[int, AnswerRecord]:
        return dict(self._answers)

    def has_history_for(self, question_index: int) -> bool:
        return question_index in self._logged_indexes

    def append_history(self, entry: ConversationHistoryEntry) -> bool:
        if entry.question_index in self._logged_indexes:
            logger.warning(f"History entry for question {entry.question_number} already logged, ignoring duplicate")
            return False
        self._history.append(entry)
        self._logged_indexes.add(entry.question_index)
        return True

    def answer_for(self, question_index: int) -> Optional[AnswerRecord]:
        return self._answers.get(question_index)

    def record_answer(self, record: AnswerRecord, supersede: bool = False) -> bool:
        """
        Store the outcome for a question.
        A second record for the same index is dropped unless supersede is set
        (used when a question is skipped after it was already evaluated).
        """
        if record.question_index in self._answers and not supersede:
            logger.warning(f"Answer for question {record.question_index + 1} already recorded, ignoring duplicate")
            return False
        self._answers[record.question_index] = record
        return True
