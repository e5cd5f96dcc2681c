"""Notice sink protocol and in-memory notice board."""

from __future__ import annotations

from typing import Any, Protocol

from landgrid.notices.models import Notice, NoticeLevel


class NoticeSink(Protocol):
    """Anything that can show a notice to the player."""

    def publish(self, notice: Notice) -> None: ...


class NoticeBoard:
    """Keeps published notices in memory, newest last."""

    def __init__(self) -> None:
        self._notices: list[Notice] = []

    def publish(self, notice: Notice) -> None:
        self._notices.append(notice)

    def post(
        self,
        level: NoticeLevel,
        title: str,
        message: str = "",
        **metadata: Any,
    ) -> Notice:
        notice = Notice(level=level, title=title, message=message, metadata=metadata)
        self.publish(notice)
        return notice

    def recent(self, limit: int = 10) -> list[Notice]:
        return self._notices[-limit:]

    def by_level(self, level: NoticeLevel) -> list[Notice]:
        return [n for n in self._notices if n.level == level]

    def clear(self) -> None:
        self._notices.clear()

    def __len__(self) -> int:
        return len(self._notices)
