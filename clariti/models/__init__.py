from clariti.models.user import User
from clariti.models.task import Task, TaskCategory, TaskSource
from clariti.models.integration import Integration, IntegrationProvider

__all__ = [
    "User",
    "Task",
    "TaskCategory",
    "TaskSource",
    "Integration",
    "IntegrationProvider",
]
