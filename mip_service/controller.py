import asyncio
import time
from typing import Awaitable, Callable, List, Optional, Tuple

from mip_core.config import MIPConfig
from mip_core.dto import ErrorNotice, Recovery
from mip_core.errors import (
    ActionInProgressError,
    DeviceError,
    FeedbackUnavailableError,
    InvalidTransitionError,
    MIPBaseError,
    NetworkError,
    ServiceTimeoutError,
    SessionStartError,
    TransportError,
    UpstreamStatusError,
)
from mip_core.logging import get_logger
from mip_dto.snapshot import ControllerSnapshot, SessionEventDTO
from mip_providers.backend.base import ISessionBackend
from mip_providers.evaluation.base import IEvaluationProvider
from mip_providers.media.base import IMediaDevices, MediaConstraints, MediaStream
from mip_providers.resume.base import IResumeProvider
from mip_providers.stt.base import ITranscriptionProvider
from mip_service.concurrency import ActionGuard
from mip_service.mapper import EvaluationMapper, SessionMapper
from mip_service.recording import AudioCapture
from mip_service.side_calls import notify_listeners, run_best_effort
from mip_session.dto import (
    AnswerRecord,
    ConversationHistoryEntry,
    DegradationReason,
    DegradedEvaluation,
    EvaluationOutcome,
    InterviewResult,
    JobContext,
    OverallFeedback,
    Question,
    Session,
)
from mip_session.engine import ConversationStateMachine
from mip_session.ledger import SessionLedger
from mip_session.reconcile import MatchStrategy, reconcile_answers
from mip_session.state import ConversationState, SessionAction, SessionEvent, TerminationReason

logger = get_logger("mip.service.controller")

Listener = Callable[[SessionEventDTO], None]

TURN_KEY = "turn"
END_KEY = "end"
START_KEY = "start"

TRY_AGAIN_MESSAGE = "We couldn't process your answer. Please try again."
TIMEOUT_MESSAGE = "Processing your answer took too long. Please try again."
OFFLINE_MESSAGE = "Couldn't reach the interview service. Check your connection and try again."
FEEDBACK_GENERATING_MESSAGE = "Generating your interview feedback. This may take a moment."
NOT_SAVED_MESSAGE = "Interview completed, but the results could not be saved."


class InterviewSessionController:
    """
    Drives one mock interview from start to persisted result.

    Responsible for:
    1. Conversation state (every change goes through the state machine)
    2. Device lifecycle (camera for the whole session, microphone per answer)
    3. The answer pipeline: record -> transcribe -> evaluate -> feedback
    4. End of session: feedback synthesis -> reconciliation -> persistence

    Public actions return True when they took effect and False when they were
    ignored or failed. They never raise; failures surface as notices and events.
    """
    def __init__(
        self,
        backend: ISessionBackend,
        transcriber: ITranscriptionProvider,
        evaluator: IEvaluationProvider,
        media: IMediaDevices,
        resume_provider: Optional[IResumeProvider] = None,
        config: Optional[MIPConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or MIPConfig.load()
        self.backend = backend
        self.transcriber = transcriber
        self.evaluator = evaluator
        self.media = media
        self.resume_provider = resume_provider
        self._sleep = sleep

        self._guard = ActionGuard()
        self._capture = AudioCapture(media, self.config, clock=clock)
        self._ledger = SessionLedger()
        self._listeners: List[Listener] = []

        self._session: Optional[Session] = None
        self._machine: Optional[ConversationStateMachine] = None
        self._pacing_task: Optional[asyncio.Task] = None

        self._camera_stream: Optional[MediaStream] = None
        self._camera_notice: Optional[ErrorNotice] = None
        self._camera_opted_out = False

        self._transcript: Optional[str] = None
        self._last_outcome: Optional[EvaluationOutcome] = None
        self._notice: Optional[ErrorNotice] = None
        self._is_loading = False
        self._is_generating_feedback = False
        self._finalized = False
        self._result: Optional[InterviewResult] = None

    # ------------------------------------------------------------------
    # Read-only view
    # ------------------------------------------------------------------
    @property
    def state(self) -> Optional[ConversationState]:
        return self._machine.state if self._machine is not None else None

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def question_index(self) -> int:
        return self._machine.question_index if self._machine is not None else 0

    @property
    def current_question(self) -> Optional[Question]:
        if self._machine is None or self.state in (ConversationState.GREETING, ConversationState.COMPLETE):
            return None
        return self._session.questions[self._machine.question_index]

    @property
    def is_last_question(self) -> bool:
        return self._machine is not None and self._machine.is_last_question

    @property
    def history(self) -> Tuple[ConversationHistoryEntry, ...]:
        return self._ledger.history

    @property
    def is_recording(self) -> bool:
        return self._capture.is_recording

    @property
    def recording_seconds(self) -> int:
        if self.state != ConversationState.LISTENING:
            return 0
        return self._capture.elapsed_seconds

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def is_generating_feedback(self) -> bool:
        return self._is_generating_feedback

    @property
    def transcript(self) -> Optional[str]:
        return self._transcript

    @property
    def last_outcome(self) -> Optional[EvaluationOutcome]:
        return self._last_outcome

    @property
    def notice(self) -> Optional[ErrorNotice]:
        return self._notice

    @property
    def camera_active(self) -> bool:
        return self._camera_stream is not None and self._camera_stream.active

    @property
    def camera_notice(self) -> Optional[ErrorNotice]:
        return self._camera_notice

    @property
    def camera_opted_out(self) -> bool:
        return self._camera_opted_out

    @property
    def result(self) -> Optional[InterviewResult]:
        return self._result

    def can(self, action: SessionAction) -> bool:
        """Whether a user action would currently be accepted."""
        if self._machine is None:
            return False
        if action != SessionAction.END and self._guard.is_held(TURN_KEY):
            return False
        return self._machine.can_apply(action)

    def snapshot(self) -> ControllerSnapshot:
        return SessionMapper.to_snapshot(self)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: SessionEvent, **payload) -> None:
        notify_listeners(
            self._listeners,
            SessionEventDTO(event=event, state=self.state, question_index=self.question_index, payload=payload),
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self, job: Optional[JobContext] = None) -> bool:
        """
        Starts the session on the backend, then opens the camera and begins pacing.
        On failure the controller stays un-started and start() may be called again.
        """
        if self._machine is not None:
            logger.warning("Session already started, ignoring start request")
            return False

        try:
            with self._guard.hold(START_KEY):
                return await self._start(job)
        except ActionInProgressError as e:
            logger.info(f"Ignored start: {e.message}")
            return False

    async def _start(self, job: Optional[JobContext]) -> bool:
        job = job or JobContext(job_role=self.config.DEFAULT_JOB_ROLE, company=self.config.DEFAULT_COMPANY)
        self._is_loading = True
        self._notice = None

        try:
            # 1. Resume is optional, a failure only means starting without it
            resume = None
            if self.resume_provider is not None:
                resume = await run_best_effort("load_resume", self.resume_provider.get_resume)

            # 2. Ask the backend for the question list
            try:
                session = await self.backend.start_session(job, resume)
            except (SessionStartError, TransportError) as e:
                logger.error(f"Failed to start interview for {job.job_role} @ {job.company}: {e}")
                self._notice = ErrorNotice(code=e.code, message=e.message, recovery=Recovery.TRY_AGAIN)
                return False
        finally:
            self._is_loading = False

        if session.question_count == 0:
            logger.error("Backend returned a session without questions")
            self._notice = ErrorNotice(
                code="START_FAILED", message="No interview questions were generated.", recovery=Recovery.TRY_AGAIN
            )
            return False

        # 3. Session is fixed from here on
        self._session = session
        self._machine = ConversationStateMachine(session.question_count)
        logger.info(
            f"Interview started: session={session.session_id} questions={session.question_count} "
            f"ai_generated={session.ai_generated}"
        )
        self._emit(
            SessionEvent.SESSION_STARTED,
            session_id=session.session_id,
            question_count=session.question_count,
            ai_generated=session.ai_generated,
        )

        # 4. Camera failure does not block the interview
        await self.initialize_camera()

        # 5. Greeting -> first question, in the background
        await self._schedule_pacing(self._pace_greeting())
        return True

    async def wait_for_pacing(self) -> None:
        """Wait until the pending pacing step (if any) has run."""
        task = self._pacing_task
        if task is not None and not task.done():
            await asyncio.wait({task})

    async def teardown(self) -> None:
        """
        Releases every device and cancels pacing.
        Does not persist anything; an unfinished session is simply abandoned.
        """
        await self._cancel_pacing()
        await self._capture.discard()
        self._release_camera()
        logger.info("Interview controller torn down")

    async def __aenter__(self) -> "InterviewSessionController":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.teardown()

    # ------------------------------------------------------------------
    # Pacing
    # ------------------------------------------------------------------
    async def _schedule_pacing(self, coro) -> None:
        await self._cancel_pacing()
        self._pacing_task = asyncio.create_task(coro)

    async def _cancel_pacing(self) -> None:
        task = self._pacing_task
        self._pacing_task = None
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.wait({task})

    async def _pace_greeting(self) -> None:
        await self._sleep(self.config.GREETING_DELAY_SEC)
        if self._apply_if_possible(SessionAction.GREETING_ELAPSED):
            await self._pace_question(self.config.FIRST_QUESTION_DELAY_SEC)

    async def _pace_question(self, delay: float) -> None:
        index = self._machine.question_index
        await self._sleep(delay)
        # User may already be speaking, or the turn moved on
        if self._machine.question_index == index:
            self._apply_if_possible(SessionAction.QUESTION_SHOWN)

    # ------------------------------------------------------------------
    # Camera
    # ------------------------------------------------------------------
    async def initialize_camera(self) -> bool:
        if self._camera_opted_out or self._finalized:
            return False

        self._release_camera()
        try:
            self._camera_stream = await self.media.get_user_media(MediaConstraints(video=True))
        except DeviceError as e:
            logger.warning(f"Camera unavailable: {e.message}")
            self._camera_notice = ErrorNotice(code=e.code, message=e.message, recovery=Recovery.TRY_AGAIN)
            self._emit(SessionEvent.DEVICE_ERROR, device=e.device, kind=e.kind.value, message=e.message)
            return False

        self._camera_notice = None
        logger.info("Camera initialized")
        return True

    async def retry_camera(self) -> bool:
        self._camera_opted_out = False
        return await self.initialize_camera()

    def proceed_without_camera(self) -> None:
        """Continue the interview with audio only."""
        self._release_camera()
        self._camera_notice = None
        self._camera_opted_out = True
        logger.info("Proceeding without camera")

    def _release_camera(self) -> None:
        if self._camera_stream is not None:
            self._camera_stream.stop()
        self._camera_stream = None

    # ------------------------------------------------------------------
    # Turn actions
    # ------------------------------------------------------------------
    async def speak(self) -> bool:
        """Acquire the microphone and start recording an answer."""
        return await self._run_guarded(TURN_KEY, SessionAction.SPEAK, self._speak)

    async def submit(self) -> bool:
        """Stop recording, then transcribe and evaluate the answer."""
        return await self._run_guarded(TURN_KEY, SessionAction.SUBMIT, self._submit)

    async def next_question(self) -> bool:
        return await self._run_guarded(TURN_KEY, SessionAction.NEXT, self._next)

    async def skip_question(self) -> bool:
        return await self._run_guarded(TURN_KEY, SessionAction.SKIP, self._skip)

    async def end_interview(self) -> bool:
        """End now. The answer in progress (if any) is kept, then feedback and persistence run."""
        return await self._run_guarded(END_KEY, SessionAction.END, self._end)

    async def _run_guarded(self, key: str, action: SessionAction, handler: Callable[[], Awaitable[bool]]) -> bool:
        if self._machine is None:
            logger.warning(f"Ignored {action.value}: interview not started")
            return False

        try:
            with self._guard.hold(key):
                if not self._machine.can_apply(action):
                    raise InvalidTransitionError(self._machine.state.value, action.value)
                return await handler()
        except (ActionInProgressError, InvalidTransitionError) as e:
            logger.info(f"Ignored {action.value}: {e.message}")
            return False

    async def _speak(self) -> bool:
        self._notice = None
        try:
            await self._capture.start()
        except DeviceError as e:
            logger.warning(f"Microphone unavailable: {e.message}")
            self._notice = ErrorNotice(code=e.code, message=e.message, recovery=Recovery.TRY_AGAIN)
            self._emit(SessionEvent.DEVICE_ERROR, device=e.device, kind=e.kind.value, message=e.message)
            return False

        if not self._machine.can_apply(SessionAction.SPEAK):
            logger.info("Session moved on while the microphone was being acquired, releasing it")
            await self._capture.discard()
            return False

        self._transcript = None
        self._last_outcome = None
        self._apply(SessionAction.SPEAK)
        return True

    async def _submit(self) -> bool:
        index = self._machine.question_index
        question = self._session.questions[index]
        self._apply(SessionAction.SUBMIT)

        # 1. Stop recording (always releases the microphone)
        try:
            payload = await self._capture.stop()
        except DeviceError as e:
            return self._fail_turn(index, e)

        # 2. Transcribe. Any failure ends this attempt, the user records again
        try:
            transcript = await self.transcriber.transcribe(payload)
        except (UpstreamStatusError, TransportError) as e:
            return self._fail_turn(index, e)

        if self._turn_abandoned(index):
            logger.info(f"Session ended while transcribing question {index + 1}, discarding transcript")
            return False
        self._transcript = transcript

        # 3. Evaluate. Failures degrade the outcome, the turn still completes
        outcome = await self._evaluate(transcript, question)
        if self._turn_abandoned(index):
            logger.info(f"Session ended while evaluating question {index + 1}, discarding late evaluation")
            return False

        # 4. Record and show feedback
        self._last_outcome = outcome
        self._ledger.record_answer(AnswerRecord.from_outcome(index, question, transcript, outcome))
        if isinstance(outcome, DegradedEvaluation):
            self._notice = ErrorNotice(
                code=f"EVAL_{outcome.reason.value}", message=outcome.feedback, recovery=Recovery.CONTINUE_ANYWAY
            )
        self._emit(SessionEvent.ANSWER_RECORDED, question_number=index + 1, outcome=outcome.kind)
        self._apply(SessionAction.EVALUATION_RECEIVED)
        return True

    async def _evaluate(self, transcript: str, question: Question) -> EvaluationOutcome:
        try:
            dto = await self.evaluator.evaluate_answer(transcript, question, self._session.job_role)
        except ServiceTimeoutError as e:
            logger.warning(f"Evaluation timed out: {e}")
            return DegradedEvaluation.for_reason(DegradationReason.TIMEOUT)
        except NetworkError as e:
            logger.warning(f"Evaluation service unreachable: {e}")
            return DegradedEvaluation.for_reason(DegradationReason.NETWORK)
        except UpstreamStatusError as e:
            logger.warning(f"Evaluation service error: {e}")
            return DegradedEvaluation.for_reason(DegradationReason.SERVICE_ERROR)

        outcome = EvaluationMapper.to_outcome(dto)
        if isinstance(outcome, DegradedEvaluation):
            logger.warning(f"Evaluation degraded: {outcome.reason.value}")
        return outcome

    def _turn_abandoned(self, index: int) -> bool:
        return self._machine.is_complete or self._machine.question_index != index

    def _fail_turn(self, index: int, error: MIPBaseError) -> bool:
        if self._turn_abandoned(index):
            logger.info(f"Session ended while processing question {index + 1}, ignoring {error.code}")
            return False

        logger.warning(f"Failed to process answer for question {index + 1}: {error}")
        self._notice = ErrorNotice(
            code=error.code, message=self._turn_failure_message(error), recovery=Recovery.TRY_AGAIN
        )
        self._emit(SessionEvent.TURN_ERROR, question_number=index + 1, code=error.code)
        self._apply(SessionAction.TRANSCRIPTION_FAILED)
        return False

    @staticmethod
    def _turn_failure_message(error: MIPBaseError) -> str:
        if isinstance(error, ServiceTimeoutError):
            return TIMEOUT_MESSAGE
        if isinstance(error, NetworkError):
            return OFFLINE_MESSAGE
        return TRY_AGAIN_MESSAGE

    async def _next(self) -> bool:
        index = self._machine.question_index
        self._ledger.append_history(self._entry_for_current_answer(index))
        return await self._advance(SessionAction.NEXT, TerminationReason.ALL_QUESTIONS_ANSWERED)

    async def _skip(self) -> bool:
        index = self._machine.question_index
        question = self._session.questions[index]

        # Skipping from FEEDBACK replaces the already evaluated answer
        supersede = self._machine.state == ConversationState.FEEDBACK
        self._ledger.append_history(ConversationHistoryEntry(question_index=index, question=question.text, skipped=True))
        self._ledger.record_answer(AnswerRecord.skipped(index, question, reached=True), supersede=supersede)
        logger.info(f"Question {index + 1} skipped")
        self._emit(SessionEvent.QUESTION_SKIPPED, question_number=index + 1)

        return await self._advance(SessionAction.SKIP, TerminationReason.LAST_QUESTION_SKIPPED)

    async def _advance(self, action: SessionAction, reason_if_last: TerminationReason) -> bool:
        new_state = self._apply(action)
        if new_state == ConversationState.COMPLETE:
            await self._finalize(reason_if_last)
            return True

        self._transcript = None
        self._last_outcome = None
        self._notice = None
        await self._schedule_pacing(self._pace_question(self.config.NEXT_QUESTION_DELAY_SEC))
        return True

    async def _end(self) -> bool:
        await self._cancel_pacing()
        self._fold_partial_answer()
        await self._capture.discard()
        self._apply(SessionAction.END)
        await self._finalize(TerminationReason.ENDED_BY_USER)
        return True

    def _fold_partial_answer(self) -> None:
        """Puts the answer in progress into history before the session completes."""
        state = self._machine.state
        index = self._machine.question_index
        question = self._session.questions[index]

        if state == ConversationState.FEEDBACK:
            entry = self._entry_for_current_answer(index)
        elif state == ConversationState.ANALYZING:
            entry = ConversationHistoryEntry(question_index=index, question=question.text, response=self._transcript or "")
        elif state == ConversationState.LISTENING:
            entry = ConversationHistoryEntry(question_index=index, question=question.text)
        else:
            return

        self._ledger.append_history(entry)

    def _entry_for_current_answer(self, index: int) -> ConversationHistoryEntry:
        question = self._session.questions[index]
        record = self._ledger.answer_for(index)
        if record is None:
            return ConversationHistoryEntry(question_index=index, question=question.text, response=self._transcript or "")
        return ConversationHistoryEntry(
            question_index=index,
            question=question.text,
            response=record.transcript or "",
            evaluation=record.outcome,
        )

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------
    async def _finalize(self, reason: TerminationReason) -> None:
        if self._finalized:
            return
        self._finalized = True

        # 1. Devices are not needed any more
        await self._cancel_pacing()
        await self._capture.discard()
        self._release_camera()

        self._is_generating_feedback = True
        self._notice = ErrorNotice(
            code="FEEDBACK_GENERATING", message=FEEDBACK_GENERATING_MESSAGE, recovery=Recovery.PLEASE_WAIT
        )
        self._emit(SessionEvent.FEEDBACK_GENERATING)

        history = self._ledger.history
        try:
            # 2. Overall feedback, placeholder on failure
            feedback = await self._synthesize_feedback(history)

            # 3. One record per question
            records = reconcile_answers(
                self._session,
                history,
                self._ledger.answers,
                MatchStrategy(self.config.RECONCILE_MATCH_STRATEGY),
            )

            # 4. Persist exactly once, carrying the feedback
            persisted = False
            saved_name = None
            try:
                response = await self.backend.end_session(self._session, records, feedback)
                persisted = True
                saved_name = response.session_name
                logger.info(f"Interview saved as '{saved_name}' ({len(records)} questions)")
            except MIPBaseError as e:
                logger.error(f"Failed to save interview history for session {self._session.session_id}: {e}")
        finally:
            self._is_generating_feedback = False

        self._result = InterviewResult(
            session=self._session,
            records=tuple(records),
            history=history,
            overall_feedback=feedback,
            termination_reason=reason,
            persisted=persisted,
            saved_session_name=saved_name,
        )
        self._notice = None
        if not persisted:
            self._notice = ErrorNotice(code="PERSIST_FAILED", message=NOT_SAVED_MESSAGE, recovery=Recovery.CONTINUE_ANYWAY)

        logger.info(f"Interview complete: reason={reason.value} persisted={persisted}")
        self._emit(SessionEvent.SESSION_COMPLETED, reason=reason.value, persisted=persisted)

    async def _synthesize_feedback(self, history: Tuple[ConversationHistoryEntry, ...]) -> OverallFeedback:
        try:
            return await self.evaluator.synthesize_feedback(self._session, history)
        except FeedbackUnavailableError as e:
            logger.error(f"Overall feedback unavailable: {e}")
            return OverallFeedback.placeholder(e.message)
        except (UpstreamStatusError, TransportError) as e:
            logger.error(f"Overall feedback generation failed: {e}")
            return OverallFeedback.placeholder()

    # ------------------------------------------------------------------
    # State changes
    # ------------------------------------------------------------------
    def _apply(self, action: SessionAction) -> ConversationState:
        previous = self._machine.state
        new_state = self._machine.apply(action)
        logger.info(f"State {previous.value} -> {new_state.value} ({action.value})")
        self._emit(SessionEvent.STATE_CHANGED, previous=previous.value, action=action.value)
        return new_state

    def _apply_if_possible(self, action: SessionAction) -> bool:
        if not self._machine.can_apply(action):
            return False
        self._apply(action)
        return True
