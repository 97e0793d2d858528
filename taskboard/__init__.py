"""Task board REST API: users, boards, tasks and subtasks."""

__version__ = "1.0.0"
