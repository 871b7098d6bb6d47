"""
Value providers for generated template variables.

A recipe that wants a random value (a nonce, an instance id) declares a
``Generated`` placeholder instead of calling a random source itself. The
executor resolves placeholders through the provider it was given, so the
caller decides whether values are fresh every run, reproducible from a
seed, or generated once and remembered.

Example:
    Template("/qux.txt", source="app_setup/qux.txt.j2",
             variables={"var": generated_uuid("qux.txt/var")})

    Executor(values=SeededValues("staging"))   # same UUID every run
"""

import random
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, TYPE_CHECKING

from pantry.logging import get_logger

if TYPE_CHECKING:
    from pantry.state import Store

logger = get_logger(__name__)


class ValueProvider(ABC):
    """Source of generated values, keyed by a recipe-chosen name."""

    # True when the same key yields the same value across runs
    stable = False

    @abstractmethod
    def uuid(self, key: str) -> str:
        """Return a canonical 36-character UUID string for key."""
        pass


class RandomValues(ValueProvider):
    """Fresh uuid4 on every call."""

    stable = False

    def uuid(self, key: str) -> str:
        return str(uuid.uuid4())


class SeededValues(ValueProvider):
    """
    Deterministic values derived from (seed, key).

    Each key gets its own generator, so adding a template does not shift
    the values of the others.
    """

    stable = True

    def __init__(self, seed: Any):
        self.seed = seed

    def uuid(self, key: str) -> str:
        rng = random.Random(f"{self.seed}:{key}")
        return str(uuid.UUID(int=rng.getrandbits(128), version=4))


class StoredValues(ValueProvider):
    """
    Generate once, then reuse the value persisted in the state store.

    Args:
        store: State store holding the generated_values table
        inner: Provider used for first generation (default: RandomValues)
    """

    stable = True

    def __init__(self, store: "Store", inner: Optional[ValueProvider] = None):
        self.store = store
        self.inner = inner or RandomValues()

    def uuid(self, key: str) -> str:
        value = self.store.get_value(key, "uuid")
        if value is None:
            value = self.inner.uuid(key)
            self.store.save_value(key, "uuid", value)
            logger.info("Generated new value for %s", key)
        return value


@dataclass(frozen=True)
class Generated:
    """Placeholder for a value produced by a ValueProvider at evaluation time."""
    key: str
    kind: str = "uuid"

    def resolve(self, provider: ValueProvider) -> str:
        generate = getattr(provider, self.kind, None)
        if generate is None:
            raise ValueError(f"{provider.__class__.__name__} cannot generate {self.kind!r} values")
        return generate(self.key)


def generated_uuid(key: str) -> Generated:
    """Declare a UUID variable named key."""
    return Generated(key=key, kind="uuid")


def resolve_variables(variables: Dict[str, Any], provider: ValueProvider) -> Dict[str, Any]:
    """Return a copy of variables with every Generated placeholder resolved."""
    return {
        name: value.resolve(provider) if isinstance(value, Generated) else value
        for name, value in variables.items()
    }


def has_generated(variables: Dict[str, Any]) -> bool:
    return any(isinstance(value, Generated) for value in variables.values())
