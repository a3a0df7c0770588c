"""Data anchor — plain Python structures that hold all variable state.

This module stores the raw data for every Variable. Instances are thin
handles holding an ``_id``; the behavior in ``varcell.variable`` reads and
writes the dicts below.
"""

import itertools

# Value state
values: dict[int, object] = {}
notifiers: dict[int, object] = {}  # var_id -> Notifier
dropped: dict[int, bool] = {}

# Collaborators injected at construction
schedulers: dict[int, object] = {}
runners: dict[int, object] = {}

# Error routing: at most one handler per variable
error_handlers: dict[int, object] = {}

# Driver state: None | Polling | Watching
drivers: dict[int, object] = {}
generations: dict[int, int] = {}  # bumped on every driver start/stop
poll_specs: dict[int, object] = {}  # last configured PollSpec
watch_specs: dict[int, object] = {}  # last configured WatchSpec

# observe() connections, disconnected on drop
connections: dict[int, list] = {}

# ID generation — itertools.count is thread-safe (C-level GIL atomic)
_id_counter = itertools.count(1)

_TABLES = (
    values,
    notifiers,
    dropped,
    schedulers,
    runners,
    error_handlers,
    drivers,
    generations,
    poll_specs,
    watch_specs,
    connections,
)


def new_id() -> int:
    return next(_id_counter)


def release(var_id: int) -> None:
    """Forget driver and collaborator state for var_id.

    The last value and the dropped flag survive so a dropped handle still reads.
    """
    for table in _TABLES:
        if table is not values and table is not dropped:
            table.pop(var_id, None)
