from .engine import ReportGenerator, SessionSummary, format_duration

summarize = ReportGenerator.summarize
render_transcript = ReportGenerator.render_transcript

__all__ = ["ReportGenerator", "SessionSummary", "format_duration", "summarize", "render_transcript"]
