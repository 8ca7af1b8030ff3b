import argparse
import asyncio
import os
import sys

# Add project root to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from mip_core.config import MIPConfig
from mip_core.logging import get_logger
from mip_providers.backend import MockSessionBackend
from mip_providers.evaluation import MockEvaluationProvider
from mip_providers.media import get_media_devices
from mip_providers.stt import MockSTTProvider
from mip_report import ReportGenerator
from mip_service.controller import InterviewSessionController
from mip_session.dto import JobContext

logger = get_logger("mip.sim")


def build_controller(config: MIPConfig, real_devices: bool) -> InterviewSessionController:
    media = get_media_devices("pyaudio" if real_devices else "mock", config=config)
    return InterviewSessionController(
        backend=MockSessionBackend(config),
        transcriber=MockSTTProvider(
            config,
            script=[
                "I have five years of backend experience, mostly Python and Go.",
                "We had a memory leak in a queue consumer, I profiled it and fixed a cache.",
            ],
        ),
        # Q1 scored, Q2 skipped, Q3 degraded
        evaluator=MockEvaluationProvider(config, script=[85.0, None]),
        media=media,
        config=config,
    )


async def answer(controller: InterviewSessionController, record_seconds: float) -> None:
    await controller.wait_for_pacing()
    if not await controller.speak():
        logger.error(f"Could not start recording: {controller.notice}")
        return
    await asyncio.sleep(record_seconds)
    await controller.submit()
    snap = controller.snapshot()
    logger.info(f"Q{snap.question_index + 1} transcript: {snap.transcript}")
    logger.info(f"Q{snap.question_index + 1} outcome: {snap.last_outcome}")


async def run(real_devices: bool, record_seconds: float) -> int:
    config = MIPConfig.load(GREETING_DELAY_SEC=0.2, FIRST_QUESTION_DELAY_SEC=0.1, NEXT_QUESTION_DELAY_SEC=0.1)
    controller = build_controller(config, real_devices)

    async with controller:
        if not await controller.start(JobContext(job_role="Backend Engineer", company="Acme")):
            logger.error(f"Start failed: {controller.notice}")
            return 1

        await answer(controller, record_seconds)
        await controller.next_question()

        await controller.wait_for_pacing()
        await controller.skip_question()

        await answer(controller, record_seconds)
        await controller.end_interview()

        result = controller.result
        if result is None:
            logger.error("Interview did not complete")
            return 1

        summary = ReportGenerator.summarize(result.records)
        print(ReportGenerator.render_transcript(result.history, result.session))
        print()
        print(f"Answered {summary.answered}/{summary.total_questions}, "
              f"scored {summary.scored}, average {summary.average_score}")
        print(f"Overall: {result.overall_feedback.overall_performance or result.overall_feedback.error}")
        print(f"Saved as: {result.saved_session_name} (persisted={result.persisted})")

    return 0


def main():
    parser = argparse.ArgumentParser(description="Run a scripted 3-question mock interview against mock services.")
    parser.add_argument("--real-devices", action="store_true", help="Capture from the local microphone/camera (PyAudio/OpenCV)")
    parser.add_argument("--record-seconds", type=float, default=0.0, help="How long to record each answer")
    args = parser.parse_args()
    sys.exit(asyncio.run(run(args.real_devices, args.record_seconds)))


if __name__ == "__main__":
    main()
