"""ORM models exposed by the Taskwise application."""
from .auth_state import AuthState
from .occurrence import Occurrence
from .reminder import Reminder
from .subtask import Subtask
from .tag import Tag, TaskTag
from .task import RepeatRule, Task, TimeOfDay

__all__ = [
    "AuthState",
    "Occurrence",
    "Reminder",
    "RepeatRule",
    "Subtask",
    "Tag",
    "Task",
    "TaskTag",
    "TimeOfDay",
]
