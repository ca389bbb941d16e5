"""Base classes for pattern classifiers."""

from abc import ABC, abstractmethod
from typing import Tuple

from ..models import ModuleTally, SourceFile


class Classifier(ABC):
    """Contract for classifiers that tally construct occurrences per module."""

    #: Name of the report (and JSON payload key) this classifier produces.
    report_type: str = ""
    #: Ordered counter names; `total` is derived from these.
    fields: Tuple[str, ...] = ()

    def new_tally(self) -> ModuleTally:
        return ModuleTally(self.fields)

    @abstractmethod
    def classify(self, source: SourceFile, module: str, tally: ModuleTally) -> None:
        """Update `tally` (owned by `module`) with the constructs found in `source`."""
