from mip_core.errors import InvalidTransitionError
from mip_core.logging import get_logger
from .state import ConversationState, SessionAction

logger = get_logger("mip.session")

S = ConversationState
A = SessionAction

# (state, action) -> next state. NEXT/SKIP/END are resolved in transition().
_TRANSITIONS = {
    (S.GREETING, A.GREETING_ELAPSED): S.QUESTION,
    (S.QUESTION, A.QUESTION_SHOWN): S.WAITING,
    (S.QUESTION, A.SPEAK): S.LISTENING,
    (S.WAITING, A.SPEAK): S.LISTENING,
    (S.LISTENING, A.SUBMIT): S.ANALYZING,
    (S.ANALYZING, A.EVALUATION_RECEIVED): S.FEEDBACK,
    (S.ANALYZING, A.TRANSCRIPTION_FAILED): S.WAITING,
}

_ADVANCE_FROM = {
    A.NEXT: frozenset({S.FEEDBACK}),
    A.SKIP: frozenset({S.WAITING, S.QUESTION, S.FEEDBACK}),
}


def transition(state: ConversationState, action: SessionAction, is_last_question: bool = False) -> ConversationState:
    """
    Closed transition function of the conversation.
    Raises InvalidTransitionError for any (state, action) pair not listed.
    """
    if state == S.COMPLETE:
        raise InvalidTransitionError(state.value, action.value)

    if action == A.END:
        return S.COMPLETE

    if action in _ADVANCE_FROM:
        if state not in _ADVANCE_FROM[action]:
            raise InvalidTransitionError(state.value, action.value)
        return S.COMPLETE if is_last_question else S.QUESTION

    try:
        return _TRANSITIONS[(state, action)]
    except KeyError:
        raise InvalidTransitionError(state.value, action.value) from None


class ConversationStateMachine:
    """
    Holds the current conversation state and question index.
    All changes go through apply(); there are no setters.
    """
    def __init__(self, question_count: int):
        if question_count < 1:
            raise ValueError("A session needs at least one question")
        self._question_count = question_count
        self._state = S.GREETING
        self._question_index = 0

    @property
    def state(self) -> ConversationState:
        return self._state

    @property
    def question_index(self) -> int:
        return self._question_index

    @property
    def question_count(self) -> int:
        return self._question_count

    @property
    def is_last_question(self) -> bool:
        return self._question_index + 1 >= self._question_count

    @property
    def is_complete(self) -> bool:
        return self._state == S.COMPLETE

    def can_apply(self, action: SessionAction) -> bool:
        try:
            transition(self._state, action, self.is_last_question)
        except InvalidTransitionError:
            return False
        return True

    def apply(self, action: SessionAction) -> ConversationState:
        previous = self._state
        new_state = transition(previous, action, self.is_last_question)

        if action in _ADVANCE_FROM and new_state == S.QUESTION:
            self._question_index += 1

        self._state = new_state
        logger.debug(
            f"Transition {previous.value} --{action.value}--> {new_state.value} "
            f"(question {self._question_index + 1}/{self._question_count})"
        )
        return new_state
