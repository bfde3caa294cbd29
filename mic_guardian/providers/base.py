from typing import Protocol, Sequence


class AttributionProvider(Protocol):
    """Answers "which clients were active between these two instants?".

    ``poll`` is blocking and may raise; callers run it off the event loop.
    The result is ordered most recently active first.
    """

    def poll(self, window_start: int, window_end: int) -> Sequence[str]: ...
