import asyncio
import os
import sys
import unittest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from mip_core.dto import Recovery
from mip_core.errors import (
    AIGenerationUnavailableError,
    DeviceErrorKind,
    FeedbackUnavailableError,
    NetworkError,
    PersistenceError,
    ServiceTimeoutError,
    TranscriptionError,
    UpstreamStatusError,
)
from mip_providers.backend import MockSessionBackend
from mip_providers.evaluation import MockEvaluationProvider
from mip_providers.media import MockMediaDevices
from mip_providers.resume import ResumeFile, StaticResumeProvider
from mip_providers.stt import MockSTTProvider
from mip_service.controller import OFFLINE_MESSAGE, TIMEOUT_MESSAGE, TRY_AGAIN_MESSAGE
from mip_session.dto import DegradationReason, DegradedEvaluation, SkippedOutcome
from mip_session.state import ConversationState as S, SessionEvent, TerminationReason
from tests.support import Harness, make_config, settle


class TestSessionStart(unittest.IsolatedAsyncioTestCase):

    async def test_01_start_reaches_waiting(self):
        h = Harness()
        self.assertIsNone(h.controller.state)
        self.assertTrue(await h.start())

        self.assertEqual(h.controller.state, S.WAITING)
        self.assertEqual(h.controller.question_index, 0)
        self.assertEqual(h.controller.current_question.text, "Tell me about yourself and your background.")
        self.assertTrue(h.controller.camera_active)
        self.assertEqual(h.event_names()[:3], ["SESSION_STARTED", "STATE_CHANGED", "STATE_CHANGED"])

    async def test_02_start_failure_can_be_retried(self):
        """Scenario: 503 from question generation, user tries again"""
        h = Harness(backend=MockSessionBackend(start_error=AIGenerationUnavailableError()))
        self.assertFalse(await h.controller.start())
        self.assertIsNone(h.controller.state)
        self.assertEqual(h.controller.notice.recovery, Recovery.TRY_AGAIN)
        self.assertIn("currently unavailable", h.controller.notice.message)
        self.assertFalse(h.controller.is_loading)

        h.backend.start_error = None
        self.assertTrue(await h.start())
        self.assertIsNone(h.controller.notice)
        self.assertFalse(await h.controller.start())

    async def test_03_transport_failure_on_start(self):
        h = Harness(backend=MockSessionBackend(start_error=NetworkError("start_session", "refused")))
        self.assertFalse(await h.controller.start())
        self.assertEqual(h.controller.notice.code, "NET_FAILURE")

    async def test_04_resume_is_passed_through(self):
        resume = ResumeFile(filename="cv.pdf", content=b"%PDF", content_type="application/pdf")
        h = Harness(resume_provider=StaticResumeProvider(resume))
        await h.start()
        self.assertEqual(h.backend.start_calls[0][1], resume)

    async def test_05_actions_before_start_are_ignored(self):
        h = Harness()
        self.assertFalse(await h.controller.speak())
        self.assertFalse(await h.controller.end_interview())
        self.assertEqual(h.media.streams, [])

    async def test_06_speak_allowed_before_pacing_finishes(self):
        h = Harness(config=make_config(GREETING_DELAY_SEC=0.0, FIRST_QUESTION_DELAY_SEC=60.0))
        await h.controller.start()
        await settle()
        self.assertEqual(h.controller.state, S.QUESTION)

        self.assertTrue(await h.controller.speak())
        self.assertEqual(h.controller.state, S.LISTENING)
        await h.controller.teardown()


class TestAnswerPipeline(unittest.IsolatedAsyncioTestCase):

    async def test_01_scored_answer(self):
        h = Harness(
            stt=MockSTTProvider(script=["I built payment systems."]),
            evaluator=MockEvaluationProvider(script=[85.0]),
        )
        await h.start()
        self.assertTrue(await h.controller.speak())
        self.assertTrue(h.controller.is_recording)
        self.assertTrue(await h.controller.submit())

        self.assertEqual(h.controller.state, S.FEEDBACK)
        self.assertEqual(h.controller.transcript, "I built payment systems.")
        self.assertEqual(h.controller.last_outcome.score, 85)
        self.assertEqual(h.stt.calls[0].data, b"mock-audio-1mock-audio-2")
        self.assertEqual(h.evaluator.evaluate_calls[0][0], "I built payment systems.")
        self.assertIn("ANSWER_RECORDED", h.event_names())

    async def test_02_null_score_still_reaches_feedback(self):
        h = Harness(evaluator=MockEvaluationProvider(script=[None]))
        await h.start()
        self.assertTrue(await h.answer())

        self.assertEqual(h.controller.state, S.FEEDBACK)
        outcome = h.controller.last_outcome
        self.assertIsInstance(outcome, DegradedEvaluation)
        self.assertEqual(outcome.reason, DegradationReason.SERVICE_BUSY)
        self.assertEqual(h.controller.notice.recovery, Recovery.CONTINUE_ANYWAY)

        await h.controller.end_interview()
        record = h.controller.result.records[0]
        self.assertTrue(record.answered)
        self.assertIsNone(record.score)

    async def test_03_evaluation_failures_degrade(self):
        cases = [
            (ServiceTimeoutError("evaluate", 30), DegradationReason.TIMEOUT),
            (NetworkError("evaluate", "reset"), DegradationReason.NETWORK),
            (UpstreamStatusError("evaluate", 502), DegradationReason.SERVICE_ERROR),
        ]
        for error, reason in cases:
            with self.subTest(reason=reason):
                h = Harness(evaluator=MockEvaluationProvider(script=[error]))
                await h.start()
                self.assertTrue(await h.answer())
                self.assertEqual(h.controller.state, S.FEEDBACK)
                self.assertEqual(h.controller.last_outcome.reason, reason)

    async def test_04_transcription_failure_returns_to_waiting(self):
        h = Harness(stt=MockSTTProvider(script=[TranscriptionError(500), "second try"]))
        await h.start()

        self.assertFalse(await h.answer())
        self.assertEqual(h.controller.state, S.WAITING)
        self.assertEqual(h.controller.notice.recovery, Recovery.TRY_AGAIN)
        self.assertEqual(h.evaluator.evaluate_calls, [])
        self.assertIn("TURN_ERROR", h.event_names())
        self.assertEqual(h.media.active_streams, [h.media.streams[0]])

        self.assertTrue(await h.answer())
        self.assertEqual(h.controller.state, S.FEEDBACK)
        self.assertEqual(h.controller.transcript, "second try")

    async def test_05_transcription_timeout_returns_to_waiting(self):
        h = Harness(stt=MockSTTProvider(script=[ServiceTimeoutError("transcribe", 30)]))
        await h.start()
        self.assertFalse(await h.answer())
        self.assertEqual(h.controller.state, S.WAITING)
        self.assertEqual(h.controller.notice.code, "NET_TIMEOUT")
        self.assertEqual(h.controller.notice.message, TIMEOUT_MESSAGE)

    async def test_06_microphone_error_keeps_waiting(self):
        h = Harness(media=MockMediaDevices(audio_error=DeviceErrorKind.BUSY))
        await h.start()

        self.assertFalse(await h.controller.speak())
        self.assertEqual(h.controller.state, S.WAITING)
        self.assertEqual(h.controller.notice.code, "DEVICE_BUSY")
        error_events = [e for e in h.events if e.event == SessionEvent.DEVICE_ERROR]
        self.assertEqual(error_events[0].payload["device"], "microphone")

    async def test_07_submit_rejected_while_pipeline_runs(self):
        h = Harness()
        h.stt.gate = asyncio.Event()
        await h.start()
        await h.controller.speak()

        pending = asyncio.create_task(h.controller.submit())
        await settle()
        self.assertEqual(h.controller.state, S.ANALYZING)
        self.assertFalse(h.controller.snapshot().can_submit)
        self.assertFalse(await h.controller.submit())
        self.assertFalse(await h.controller.skip_question())

        h.stt.gate.set()
        self.assertTrue(await pending)
        self.assertEqual(len(h.stt.calls), 1)
        self.assertEqual(len(h.evaluator.evaluate_calls), 1)

    async def test_08_recording_timer(self):
        now = [100.0]
        h = Harness(clock=lambda: now[0])
        await h.start()
        await h.controller.speak()
        now[0] = 165.0

        snap = h.controller.snapshot()
        self.assertEqual(snap.recording_seconds, 65)
        self.assertEqual(snap.recording_time, "01:05")
        self.assertTrue(snap.can_submit)
        self.assertFalse(snap.can_speak)
        await h.controller.teardown()

    async def test_09_turn_failure_message_depends_on_cause(self):
        """
        Timeouts, unreachable service and rejected uploads each get their own wording.
        """
        cases = [
            (ServiceTimeoutError("transcribe", 30), TIMEOUT_MESSAGE),
            (NetworkError("transcribe", "connection refused"), OFFLINE_MESSAGE),
            (TranscriptionError(500), TRY_AGAIN_MESSAGE),
        ]
        messages = set()
        for error, expected in cases:
            with self.subTest(error=type(error).__name__):
                h = Harness(stt=MockSTTProvider(script=[error]))
                await h.start()
                self.assertFalse(await h.answer())
                self.assertEqual(h.controller.notice.message, expected)
                messages.add(h.controller.notice.message)
        self.assertEqual(len(messages), 3)


class TestAdvance(unittest.IsolatedAsyncioTestCase):

    async def test_01_double_next_advances_once(self):
        h = Harness()
        await h.start()
        await h.answer()

        results = await asyncio.gather(h.controller.next_question(), h.controller.next_question())
        self.assertEqual(sorted(results), [False, True])
        self.assertEqual(h.controller.question_index, 1)
        self.assertEqual(len(h.controller.history), 1)
        self.assertFalse(await h.controller.next_question())
        self.assertEqual(len(h.controller.history), 1)

    async def test_02_next_logs_the_exchange(self):
        h = Harness(stt=MockSTTProvider(script=["answer one"]), evaluator=MockEvaluationProvider(script=[70.0]))
        await h.start()
        await h.answer()
        await h.controller.next_question()
        await h.controller.wait_for_pacing()

        entry = h.controller.history[0]
        self.assertEqual(entry.question_number, 1)
        self.assertEqual(entry.response, "answer one")
        self.assertEqual(entry.evaluation.score, 70)
        self.assertEqual(h.controller.state, S.WAITING)
        self.assertIsNone(h.controller.transcript)
        self.assertIsNone(h.controller.last_outcome)

    async def test_03_skip_on_last_question_completes(self):
        h = Harness()
        await h.start()
        await h.answer()
        await h.controller.next_question()
        await h.controller.wait_for_pacing()
        await h.controller.skip_question()
        await h.controller.wait_for_pacing()
        self.assertTrue(await h.controller.skip_question())

        self.assertEqual(h.controller.state, S.COMPLETE)
        result = h.controller.result
        self.assertEqual(result.termination_reason, TerminationReason.LAST_QUESTION_SKIPPED)
        self.assertEqual(len(h.evaluator.feedback_calls), 1)
        self.assertEqual(len(h.evaluator.feedback_calls[0][1]), 3)
        self.assertEqual([r.answered for r in result.records], [True, False, False])
        self.assertEqual(len(h.backend.end_calls), 1)

    async def test_04_skip_after_feedback_replaces_answer(self):
        h = Harness()
        await h.start()
        await h.answer()
        self.assertTrue(await h.controller.skip_question())
        await h.controller.end_interview()

        record = h.controller.result.records[0]
        self.assertFalse(record.answered)
        self.assertEqual(record.outcome, SkippedOutcome(reached=True))
        self.assertTrue(h.controller.history[0].skipped)

    async def test_05_next_on_last_question_completes(self):
        h = Harness(backend=MockSessionBackend(questions=["Only question"]))
        await h.start()
        await h.answer()
        self.assertTrue(await h.controller.next_question())
        self.assertEqual(h.controller.result.termination_reason, TerminationReason.ALL_QUESTIONS_ANSWERED)
        self.assertTrue(h.controller.result.persisted)


class TestCompletion(unittest.IsolatedAsyncioTestCase):

    async def test_01_end_to_end_three_questions(self):
        """Scenario: 85 / skipped / degraded, END after Q3 feedback"""
        h = Harness(
            stt=MockSTTProvider(script=["first answer", "third answer"]),
            evaluator=MockEvaluationProvider(script=[85.0, None]),
        )
        await h.start()

        await h.answer()
        await h.controller.next_question()
        await h.controller.wait_for_pacing()
        await h.controller.skip_question()
        await h.controller.wait_for_pacing()
        await h.answer()
        self.assertEqual(h.controller.state, S.FEEDBACK)
        self.assertTrue(await h.controller.end_interview())

        result = h.controller.result
        self.assertEqual(result.termination_reason, TerminationReason.ENDED_BY_USER)
        self.assertEqual(len(result.records), 3)
        self.assertEqual([r.answered for r in result.records], [True, False, True])
        self.assertEqual([r.score for r in result.records], [85, None, None])
        self.assertIsInstance(result.records[1].outcome, SkippedOutcome)
        self.assertIsInstance(result.records[2].outcome, DegradedEvaluation)
        self.assertEqual(result.records[2].transcript, "third answer")

        self.assertEqual(len(h.evaluator.feedback_calls), 1)
        self.assertEqual(len(h.evaluator.feedback_calls[0][1]), 3)
        self.assertEqual(len(h.backend.end_calls), 1)
        session, records, feedback = h.backend.end_calls[0]
        self.assertEqual(len(records), 3)
        self.assertEqual(feedback, result.overall_feedback)
        self.assertTrue(result.persisted)
        self.assertEqual(result.saved_session_name, "Software Engineer @ Tech Company")

        names = h.event_names()
        self.assertLess(names.index("FEEDBACK_GENERATING"), names.index("SESSION_COMPLETED"))
        self.assertEqual(names.count("SESSION_COMPLETED"), 1)

    async def test_02_feedback_failure_persists_placeholder(self):
        h = Harness(evaluator=MockEvaluationProvider(feedback=FeedbackUnavailableError()))
        await h.start()
        await h.answer()
        await h.controller.end_interview()

        feedback = h.backend.end_calls[0][2]
        self.assertTrue(feedback.error)
        self.assertEqual(feedback.parameter_scores.total_score, 0)
        self.assertEqual(feedback.strengths, [])
        self.assertEqual(feedback.score, "0/100")
        self.assertTrue(h.controller.result.persisted)

    async def test_03_feedback_timeout_persists_placeholder(self):
        h = Harness(evaluator=MockEvaluationProvider(feedback=ServiceTimeoutError("overall_feedback", 30)))
        await h.start()
        await h.controller.end_interview()
        self.assertTrue(h.backend.end_calls[0][2].is_degraded)

    async def test_04_persistence_failure_still_completes(self):
        h = Harness(backend=MockSessionBackend(end_error=PersistenceError(500)))
        await h.start()
        with self.assertLogs("mip.service.controller", level="ERROR"):
            self.assertTrue(await h.controller.end_interview())

        self.assertEqual(h.controller.state, S.COMPLETE)
        self.assertFalse(h.controller.result.persisted)
        self.assertEqual(h.controller.notice.code, "PERSIST_FAILED")
        self.assertFalse(h.controller.is_generating_feedback)

    async def test_05_end_twice_finalizes_once(self):
        h = Harness()
        await h.start()
        results = await asyncio.gather(h.controller.end_interview(), h.controller.end_interview())
        self.assertEqual(sorted(results), [False, True])
        self.assertEqual(len(h.evaluator.feedback_calls), 1)
        self.assertEqual(len(h.backend.end_calls), 1)
        self.assertFalse(await h.controller.speak())

    async def test_06_end_before_any_answer(self):
        h = Harness()
        await h.start()
        await h.controller.end_interview()
        result = h.controller.result
        self.assertEqual(result.history, ())
        self.assertEqual([r.outcome for r in result.records], [SkippedOutcome(reached=False)] * 3)

    async def test_07_end_while_analyzing_discards_late_evaluation(self):
        h = Harness(stt=MockSTTProvider(script=["partial"]))
        h.evaluator.gate = asyncio.Event()
        await h.start()
        await h.controller.speak()

        pending = asyncio.create_task(h.controller.submit())
        await settle()
        self.assertEqual(len(h.evaluator.evaluate_calls), 1)
        self.assertTrue(await h.controller.end_interview())

        h.evaluator.gate.set()
        self.assertFalse(await pending)

        record = h.controller.result.records[0]
        self.assertTrue(record.answered)
        self.assertEqual(record.transcript, "partial")
        self.assertEqual(record.outcome.reason, DegradationReason.NOT_EVALUATED)
        self.assertIsNone(h.controller.last_outcome)
        self.assertEqual(h.controller.state, S.COMPLETE)

    async def test_08_generating_flag_visible_during_synthesis(self):
        h = Harness()
        await h.start()
        seen = []
        original = h.evaluator.synthesize_feedback

        async def spy(session, history):
            seen.append(h.controller.snapshot())
            return await original(session, history)

        h.evaluator.synthesize_feedback = spy
        await h.controller.end_interview()

        self.assertTrue(seen[0].is_generating_feedback)
        self.assertEqual(seen[0].notice.recovery, Recovery.PLEASE_WAIT)
        self.assertFalse(h.controller.snapshot().is_generating_feedback)
        self.assertIsNotNone(h.controller.snapshot().result)


class TestDeviceRelease(unittest.IsolatedAsyncioTestCase):

    async def test_01_released_on_completion(self):
        h = Harness(backend=MockSessionBackend(questions=["Only question"]))
        await h.start()
        await h.answer()
        await h.controller.next_question()
        self.assertEqual(h.media.active_streams, [])
        self.assertFalse(h.controller.camera_active)

    async def test_02_released_on_end_while_listening(self):
        h = Harness()
        await h.start()
        await h.controller.speak()
        self.assertEqual(len(h.media.active_streams), 2)

        await h.controller.end_interview()
        self.assertEqual(h.media.active_streams, [])
        self.assertEqual(len(h.controller.history), 1)
        self.assertEqual(h.controller.history[0].response, "")
        self.assertEqual(h.controller.result.records[0].outcome, SkippedOutcome(reached=True))

    async def test_03_released_on_teardown_while_listening(self):
        h = Harness()
        async with h.controller:
            await h.start()
            await h.controller.speak()
        self.assertEqual(h.media.active_streams, [])
        self.assertIsNone(h.controller.result)
        self.assertEqual(h.backend.end_calls, [])

    async def test_04_teardown_cancels_pacing(self):
        h = Harness(config=make_config(GREETING_DELAY_SEC=60.0))
        await h.controller.start()
        await h.controller.teardown()
        self.assertEqual(h.controller.state, S.GREETING)
        self.assertIsNone(h.controller._pacing_task)


class TestCamera(unittest.IsolatedAsyncioTestCase):

    async def test_01_camera_error_does_not_block(self):
        h = Harness(media=MockMediaDevices(video_error=DeviceErrorKind.PERMISSION_DENIED))
        self.assertTrue(await h.start())
        self.assertFalse(h.controller.camera_active)
        self.assertEqual(h.controller.camera_notice.code, "DEVICE_PERMISSION_DENIED")
        self.assertIn("Camera permission denied", h.controller.camera_notice.message)
        self.assertTrue(await h.answer())

    async def test_02_retry_camera(self):
        h = Harness(media=MockMediaDevices(video_error=DeviceErrorKind.NOT_FOUND))
        await h.start()
        h.media.video_error = None
        self.assertTrue(await h.controller.retry_camera())
        self.assertTrue(h.controller.camera_active)
        self.assertIsNone(h.controller.camera_notice)

    async def test_03_proceed_without_camera(self):
        h = Harness()
        await h.start()
        self.assertTrue(h.controller.camera_active)

        h.controller.proceed_without_camera()
        snap = h.controller.snapshot()
        self.assertFalse(snap.camera_active)
        self.assertTrue(snap.proceed_without_camera)
        self.assertIsNone(snap.camera_notice)
        self.assertEqual(h.media.active_streams, [])
        self.assertFalse(await h.controller.initialize_camera())


class TestListeners(unittest.IsolatedAsyncioTestCase):

    async def test_01_failing_listener_does_not_block_others(self):
        h = Harness()

        def broken(event):
            raise RuntimeError("listener bug")

        h.controller.remove_listener(h.events.append)
        h.controller.add_listener(broken)
        h.controller.add_listener(h.events.append)
        self.assertTrue(await h.start())
        self.assertEqual(h.controller.state, S.WAITING)
        self.assertIn("SESSION_STARTED", h.event_names())

    async def test_02_snapshot_view(self):
        h = Harness()
        await h.start()
        snap = h.controller.snapshot()
        self.assertEqual(snap.state, S.WAITING)
        self.assertEqual(snap.total_questions, 3)
        self.assertEqual(snap.session_id, "mock-session-1")
        self.assertTrue(snap.can_speak)
        self.assertTrue(snap.can_skip)
        self.assertFalse(snap.can_advance)
        self.assertEqual(snap.progress_percentage, 0.0)
        self.assertEqual(snap.recording_time, "00:00")


if __name__ == "__main__":
    unittest.main()
