"""
Per-session classroom state: the three synchronized lists, the quiz, and the
mutations a signed-in user can perform.

This is where service errors stop. Every mutation is sent immediately or not at
all; a failure is logged and posted as a notice, never raised to the caller.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .entities import DAYS, Priority, User
from .errors import PortalError
from .quiz import AttemptGate, QuizController
from .sync import AnnouncementSynchronizer, MessageSynchronizer, ScheduleSynchronizer

logger = logging.getLogger(__name__)


class Classroom:
    def __init__(self, client, user: User, gate: AttemptGate = AttemptGate.DEFAULT_SET_ONLY,
                 notify: Optional[Callable[[str], None]] = None):
        self.client = client
        self.user = user
        self.notify = notify or (lambda text: None)
        self.messages = MessageSynchronizer(client.collection('messages'))
        self.announcements = AnnouncementSynchronizer(client.collection('announcements'))
        self.schedule = ScheduleSynchronizer(client.collection('schedule'))
        self.quiz = QuizController(client, user.id, gate=gate, generator=client, on_notice=self.notify)
        self.is_open = False

    @property
    def synchronizers(self):
        return (self.messages, self.announcements, self.schedule)

    def open(self) -> None:
        for sync in self.synchronizers:
            if not sync.load():
                self.notify(f'Could not load {sync.source.name}; the list may be out of date.')
            sync.subscribe()
        self.quiz.start()
        self.is_open = True

    def close(self) -> None:
        for sync in self.synchronizers:
            sync.unsubscribe()
        self.is_open = False

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # ------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------
    def send_message(self, text: str) -> bool:
        """Fire and forget: the message shows up through the subscription, not locally."""
        content = (text or '').strip()
        if not content:
            return False
        return self._mutate('send message', self.client.send_message, content)

    def translate(self, text: str) -> Optional[str]:
        """'hanzi (pinyin)' for the chat input, or None to leave the input unchanged."""
        if not text or not text.strip():
            return None
        translation = self.client.translate(text)
        if not translation:
            self.notify('Translation is unavailable right now.')
            return None
        return f"{translation['hanzi']} ({translation['pinyin']})"

    # ------------------------------------------------------------
    # Admin-only mutations
    # ------------------------------------------------------------
    def post_announcement(self, title: str, content: str, priority: str = Priority.NORMAL.value) -> bool:
        if not self._require_admin():
            return False
        if not title.strip() or not content.strip():
            return False
        level = (priority or Priority.NORMAL.value).strip().upper()
        if level not in (p.value for p in Priority):
            self.notify(f'Unknown priority {priority!r}; use NORMAL or URGENT.')
            return False
        return self._mutate('post announcement', self.client.post_announcement,
                            title.strip(), content.strip(), level)

    def delete_announcement(self, record_id: str) -> bool:
        if not self._require_admin():
            return False
        return self._mutate('delete announcement', self.client.delete_announcement, record_id)

    def add_schedule_item(self, day: str, time: str, subject: str, room: str) -> bool:
        if not self._require_admin():
            return False
        if day not in DAYS or not time.strip() or not subject.strip():
            return False
        return self._mutate('add schedule item', self.client.add_schedule_item,
                            day, time.strip(), subject.strip(), room.strip())

    def delete_schedule_item(self, record_id: str) -> bool:
        if not self._require_admin():
            return False
        return self._mutate('delete schedule item', self.client.delete_schedule_item, record_id)

    # ------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------
    def _require_admin(self) -> bool:
        if self.user.is_admin:
            return True
        self.notify('Only teachers can do that.')
        return False

    def _mutate(self, label, call, *args) -> bool:
        try:
            call(*args)
        except PortalError as e:
            logger.error(f"Failed to {label}: {e}")
            self.notify(f'Could not {label}: {e.message}')
            return False
        return True
