from typing import Protocol

from .models import Enrichment, Reading


class Sink(Protocol):
    """Destination for readings.

    deliver() must raise DeliveryFailure for transport errors and non-2xx
    responses. Anything else it raises is treated as a bug by the runner.
    """

    name: str

    def deliver(self, reading: Reading, enrichment: Enrichment | None = None) -> None: ...

    def close(self) -> None: ...
