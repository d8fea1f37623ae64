from deploybot.services.formatter import format_duration, format_notification
from deploybot.services.jobs import JobService

__all__ = ["JobService", "format_duration", "format_notification"]
