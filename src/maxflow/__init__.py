from .client import MaxflowClient as MaxflowClient
from .client import PulseAPI as PulseAPI
from .core import PushQueue as PushQueue
from .exceptions import MaxflowConfigError as MaxflowConfigError
from .exceptions import MaxflowError as MaxflowError
from .exceptions import QueueClosedError as QueueClosedError
from .models import FindData as FindData
from .models import MaxflowConfig as MaxflowConfig
from .models import PushOptions as PushOptions
from .models import RunOptions as RunOptions
from .query import build_query as build_query

__all__ = [
    "MaxflowClient",
    "PulseAPI",
    "PushQueue",
    "MaxflowError",
    "MaxflowConfigError",
    "QueueClosedError",
    "FindData",
    "MaxflowConfig",
    "PushOptions",
    "RunOptions",
    "build_query",
]
