from typing import Iterable, List


class CatalogError(ValueError):
    """Raised while ingesting a program whose requirements do not fit the course catalog."""


class ValidationError(ValueError):
    """Raised for malformed candidate input. Collects every problem found, not only the first."""

    def __init__(self, errors: Iterable[str]):
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors))
