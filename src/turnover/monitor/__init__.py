"""Reactive observers of committed task changes."""

from turnover.monitor.feed import Subscription, TaskChangeFeed, record_change, task_changes

__all__ = ["Subscription", "TaskChangeFeed", "record_change", "task_changes"]
