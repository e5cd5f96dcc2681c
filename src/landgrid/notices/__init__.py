"""User-facing notices."""

from landgrid.notices.board import NoticeBoard, NoticeSink
from landgrid.notices.models import Notice, NoticeLevel

__all__ = ["Notice", "NoticeBoard", "NoticeLevel", "NoticeSink"]
