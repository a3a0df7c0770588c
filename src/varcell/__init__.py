"""varcell: reactive value cells with poll, watch and derive drivers."""

from importlib.metadata import version as _version

__version__ = _version("varcell")

from varcell import config
from varcell.binding import Binding
from varcell.errors import ProcessError, VarcellError, VariableDroppedError
from varcell.events import EventEmitter, EventSource
from varcell.notifier import Notifier
from varcell.process import SubprocessRunner
from varcell.scheduler import AsyncioScheduler, ManualScheduler, ThreadScheduler
from varcell.variable import Variable, derive
# textual NOT auto-imported — opt-in only

__all__ = [
    "Variable",
    "derive",
    "Binding",
    "Notifier",
    "EventEmitter",
    "EventSource",
    "ThreadScheduler",
    "AsyncioScheduler",
    "ManualScheduler",
    "SubprocessRunner",
    "VarcellError",
    "ProcessError",
    "VariableDroppedError",
    "config",
]
