"""Exception types for modland.

Configuration and map errors are raised before any generation executes.
Extinction is normally reported as data on ``SimulationResult``; the
``PopulationExtinct`` exception exists for callers that prefer to abort.
"""

from __future__ import annotations

from typing import Optional


class InvalidConfiguration(ValueError):
    """A structural precondition on parameters or input arrays was violated."""


class MapGenotypeMismatch(InvalidConfiguration):
    """Recombination maps do not fit the modifier genotypes or the locus count."""


class PopulationExtinct(RuntimeError):
    """A generation produced zero breeders of at least one sex."""

    def __init__(self, generation: int, message: Optional[str] = None):
        self.generation = generation
        super().__init__(
            message or f"Population collapsed at generation {generation}: "
                       f"no breeders of at least one sex"
        )
