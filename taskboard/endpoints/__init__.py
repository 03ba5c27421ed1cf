"""
Endpoint operations.

Every operation is a plain async function taking a RequestContext first.
OPERATIONS maps each public operation name to its handler.
"""

from typing import Callable, Dict

from . import tasks, comments, preferences, dashboard, accounts

OPERATIONS: Dict[str, Callable] = {
    # Tasks
    "createTask": tasks.create_task,
    "updateTask": tasks.update_task,
    "deleteTask": tasks.delete_task,
    "getTask": tasks.get_task,
    "listTasks": tasks.list_tasks,
    "listByStatus": tasks.list_by_status,
    "listByPriority": tasks.list_by_priority,
    "listOverdue": tasks.list_overdue,
    "listUpcoming": tasks.list_upcoming,
    "getTaskStats": tasks.get_task_stats,
    "getTaskHistory": tasks.get_task_history,
    # Comments
    "createComment": comments.create_comment,
    "updateComment": comments.update_comment,
    "deleteComment": comments.delete_comment,
    "getComment": comments.get_comment,
    "listCommentsByTask": comments.list_comments_by_task,
    "getCommentCount": comments.get_comment_count,
    # Preferences
    "getPreferences": preferences.get_preferences,
    "updatePreferences": preferences.update_preferences,
    "initPreferences": preferences.init_preferences,
    # Dashboard
    "dashboardSummary": dashboard.dashboard_summary,
    "recentTasks": dashboard.recent_tasks,
    "recentActivity": dashboard.recent_activity,
    "tasksByPriority": dashboard.tasks_by_priority,
    "completionStats": dashboard.completion_stats,
    # Accounts
    "signup": accounts.signup,
    "login": accounts.login,
    "logout": accounts.logout,
}


def get_operation(name: str) -> Callable:
    """Look up a handler by operation name. Raises KeyError if unknown."""
    try:
        return OPERATIONS[name]
    except KeyError:
        raise KeyError(f"Unknown operation '{name}'")


__all__ = ["OPERATIONS", "get_operation", "tasks", "comments", "preferences", "dashboard", "accounts"]
