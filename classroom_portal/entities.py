"""Client-side copies of the records the portal service owns."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

DAYS = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday']


class Role(str, Enum):
    STUDENT = 'student'
    ADMIN = 'admin'


class Priority(str, Enum):
    NORMAL = 'NORMAL'
    URGENT = 'URGENT'


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Accept the ISO strings the service emits (with or without a trailing Z)."""
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        return None


@dataclass
class User:
    id: str
    email: str
    name: str
    role: Role = Role.STUDENT

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'User':
        return cls(
            id=data['id'],
            email=data.get('email', ''),
            name=data.get('name') or data.get('email', '').split('@')[0],
            role=Role(data.get('role', Role.STUDENT.value)),
        )


@dataclass
class Message:
    id: str
    user_id: Optional[str]
    content: str
    created_at: Optional[datetime]
    author_name: str = 'Unknown'
    author_role: Role = Role.STUDENT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Message':
        author = data.get('author') or {}
        return cls(
            id=data['id'],
            user_id=data.get('user_id'),
            content=data.get('content', ''),
            created_at=parse_timestamp(data.get('created_at')),
            author_name=author.get('name', 'Unknown'),
            author_role=Role(author.get('role', Role.STUDENT.value)),
        )


@dataclass
class Announcement:
    id: str
    title: str
    content: str
    created_at: Optional[datetime]
    priority: Priority = Priority.NORMAL

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Announcement':
        return cls(
            id=data['id'],
            title=data.get('title', ''),
            content=data.get('content', ''),
            created_at=parse_timestamp(data.get('created_at')),
            priority=Priority(data.get('priority', Priority.NORMAL.value)),
        )


@dataclass
class ScheduleItem:
    id: str
    day: str
    time: str
    subject: str
    room: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScheduleItem':
        return cls(
            id=data['id'],
            day=data.get('day', ''),
            time=data.get('time', ''),
            subject=data.get('subject', ''),
            room=data.get('room', ''),
            created_at=parse_timestamp(data.get('created_at')),
        )


@dataclass
class QuizQuestion:
    """A multiple-choice question; ``correct_answer`` must equal one option exactly."""

    id: str
    question: str
    options: List[str] = field(default_factory=list)
    correct_answer: str = ''
    explanation: str = ''

    def is_correct(self, option: str) -> bool:
        return option == self.correct_answer


@dataclass
class QuizResult:
    id: Optional[str]
    user_id: str
    score: int
    total: int
    question_set: str = 'default'
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QuizResult':
        return cls(
            id=data.get('id'),
            user_id=data.get('user_id', ''),
            score=int(data.get('score', 0)),
            total=int(data.get('total', 0)),
            question_set=data.get('question_set', 'default'),
            created_at=parse_timestamp(data.get('created_at')),
        )


def group_schedule(items: List[ScheduleItem]) -> Dict[str, List[ScheduleItem]]:
    """Group by weekday in week order, each day sorted by its time range string."""
    grouped = {day: [] for day in DAYS}
    for item in items:
        grouped.setdefault(item.day, []).append(item)
    for day_items in grouped.values():
        day_items.sort(key=lambda i: i.time)
    return grouped
