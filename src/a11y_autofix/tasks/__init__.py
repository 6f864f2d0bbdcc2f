"""Accessibility task models and loader exports."""

from .loader import TaskLoadError, TaskLoader, load_guidelines, load_tasks
from .models import AccessibilityTask

__all__ = [
    "AccessibilityTask",
    "TaskLoadError",
    "TaskLoader",
    "load_guidelines",
    "load_tasks",
]
