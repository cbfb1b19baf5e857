"""
Normalizer registry, keyed by task source
"""
from clariti.models.task import TaskSource
from clariti.normalizers.base import Normalizer
from clariti.normalizers.canvas import CanvasNormalizer
from clariti.normalizers.gmail import GmailNormalizer
from clariti.normalizers.google_calendar import GoogleCalendarNormalizer
from clariti.normalizers.slack import SlackNormalizer

NORMALIZERS = {
    TaskSource.CANVAS: CanvasNormalizer,
    TaskSource.GMAIL: GmailNormalizer,
    TaskSource.GOOGLE_CALENDAR: GoogleCalendarNormalizer,
    TaskSource.SLACK: SlackNormalizer,
}


def get_normalizer(source: TaskSource) -> Normalizer:
    return NORMALIZERS[TaskSource(source)]()


__all__ = [
    "Normalizer",
    "CanvasNormalizer",
    "GmailNormalizer",
    "GoogleCalendarNormalizer",
    "SlackNormalizer",
    "get_normalizer",
]
