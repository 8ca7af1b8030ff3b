from typing import Any

from mip_core.dto import AnswerEvaluationDTO
from mip_dto.snapshot import ControllerSnapshot
from mip_report.engine import format_duration
from mip_session.dto import DegradationReason, DegradedEvaluation, EvaluationOutcome, ScoredEvaluation
from mip_session.state import SessionAction


class EvaluationMapper:
    """
    Converts the evaluation wire DTO into the domain outcome.
    """

    @staticmethod
    def to_outcome(dto: AnswerEvaluationDTO) -> EvaluationOutcome:
        if dto.is_degraded:
            return DegradedEvaluation.for_reason(DegradationReason.SERVICE_BUSY, dto.feedback)

        # Backend occasionally reports out-of-range scores
        score = min(100.0, max(0.0, float(dto.answer_score)))
        return ScoredEvaluation(
            score=score,
            feedback=dto.feedback or "",
            improvements=tuple(dto.improvements),
        )


class SessionMapper:
    """
    Explicit Mapper to convert the controller's live state to a snapshot DTO.
    Ensures no controller internals leak to the UI layer.
    """

    @staticmethod
    def to_snapshot(controller: Any) -> ControllerSnapshot:
        session = controller.session
        total = session.question_count if session is not None else 0
        index = controller.question_index

        progress = 0.0
        if total > 0:
            answered_or_passed = len(controller.history)
            progress = round(min(answered_or_passed, total) / total * 100, 1)

        current_text = None
        if controller.current_question is not None:
            current_text = controller.current_question.text

        seconds = controller.recording_seconds

        return ControllerSnapshot(
            state=controller.state,
            session_id=session.session_id if session is not None else None,
            job_role=session.job_role if session is not None else None,
            company=session.company if session is not None else None,
            question_index=index,
            total_questions=total,
            current_question=current_text,
            is_last_question=controller.is_last_question,
            progress_percentage=progress,
            history_length=len(controller.history),
            is_recording=controller.is_recording,
            recording_seconds=seconds,
            recording_time=format_duration(seconds),
            is_loading=controller.is_loading,
            is_generating_feedback=controller.is_generating_feedback,
            can_speak=controller.can(SessionAction.SPEAK),
            can_submit=controller.can(SessionAction.SUBMIT),
            can_skip=controller.can(SessionAction.SKIP),
            can_advance=controller.can(SessionAction.NEXT),
            can_end=controller.can(SessionAction.END),
            transcript=controller.transcript,
            last_outcome=controller.last_outcome,
            notice=controller.notice,
            camera_active=controller.camera_active,
            camera_notice=controller.camera_notice,
            proceed_without_camera=controller.camera_opted_out,
            result=controller.result,
        )
