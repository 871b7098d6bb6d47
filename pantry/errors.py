"""
Error taxonomy for Pantry.

Resources raise these; the executor collects them per resource and the
CLI reports them. Each error also derives from the closest builtin so
callers can catch either.
"""


class PantryError(Exception):
    """Base class for all Pantry errors."""

    pass


class ResolutionError(PantryError, FileNotFoundError):
    """A referenced source, template or package could not be found."""

    pass


class PermissionDenied(PantryError, PermissionError):
    """Target not writable, or the package manager refused to act."""

    pass


class UnknownIdentity(PermissionDenied):
    """Owner or group does not exist on the target system."""

    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        super().__init__(f"Unknown {kind} on target: {name}")


class BindingError(PantryError, KeyError):
    """Template referenced a variable that was not supplied."""

    def __str__(self):
        # KeyError quotes its argument, keep the plain message
        return str(self.args[0]) if self.args else ""


class PackageError(PantryError, RuntimeError):
    """Package manager failed for a reason other than the above."""

    pass


class RenderError(PantryError, ValueError):
    """Template source could not be parsed."""

    pass
