from app_executors.app_executors import AppExecutors, TaskExecutor

__all__ = ["AppExecutors", "TaskExecutor"]
