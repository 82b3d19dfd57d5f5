"""
Error taxonomy for the coupled model.

Precondition violations (wrong shape, unknown tag, unknown coupler field) and
data-invariant violations (bad surface fractions) are wiring bugs: they are
raised immediately and never retried. Component failures during a step abort
the whole run. Conservation drift is only reported after the fact.
"""

from __future__ import annotations


class CouplerError(Exception):
    """Base class for all coupler errors."""


class UnsupportedFieldError(CouplerError, KeyError):
    """A component was asked to get/update a field tag it does not implement."""

    def __init__(self, component: str, tag, action: str = "get") -> None:
        self.component = component
        self.tag = tag
        self.action = action
        super().__init__(f"undefined field {getattr(tag, 'name', tag)} for {component} ({action})")

    def __str__(self) -> str:
        return self.args[0]


class UnknownCouplerFieldError(CouplerError, KeyError):
    """Access to a coupler field outside the closed schema."""

    def __str__(self) -> str:
        return self.args[0] if self.args else "unknown coupler field"


class FieldShapeError(CouplerError, ValueError):
    """A value does not live on the expected boundary space."""


class SurfaceFractionError(CouplerError, ValueError):
    """Surface fractions out of range, not partitioning to 1, or a zero combined mask."""


class ComponentStepError(CouplerError, RuntimeError):
    """A component failed while stepping; the coupled run aborts."""

    def __init__(self, component: str, t: float, step_index: int, reason: str) -> None:
        self.component = component
        self.t = t
        self.step_index = step_index
        super().__init__(
            f"component '{component}' failed at coupling step {step_index} (t={t:g} s): {reason}"
        )


class RestartStateError(CouplerError, RuntimeError):
    """A restart file was offered to a component that has no prognostic state."""

    def __init__(self, component: str) -> None:
        self.component = component
        super().__init__(f"component '{component}' has no prognostic state to restore")


class ConservationError(CouplerError, AssertionError):
    """Post-hoc conservation check exceeded its tolerance."""
