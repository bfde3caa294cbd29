from typing import Callable, FrozenSet, Protocol

RecordingSetCallback = Callable[[FrozenSet[str], int], None]


class AudioStateSource(Protocol):
    """Pushes the set of clients currently capturing audio whenever it changes.

    The callback receives ``(clients, timestamp_ms)``. Sources may coalesce or
    drop intermediate transitions and may call back from any thread.
    """

    async def start(self, callback: RecordingSetCallback) -> None: ...
    async def stop(self) -> None: ...
