from .remind_overdue_approvals_task import remind_overdue_approvals_task

__all__ = ["remind_overdue_approvals_task"]
