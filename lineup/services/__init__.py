
from .dispatcher import EmailDispatcher
from .scheduler_service import SchedulerService

__all__ = ['EmailDispatcher', 'SchedulerService']
