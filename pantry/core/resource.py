"""
Core resource abstraction for Pantry.

Every resource (Package, CookbookFile, Template) inherits from Resource
and implements the Check/Plan/Apply pattern. A resource on its own is
just a declaration; it becomes actionable once an executor binds a
transport, cookbook and value provider to it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Optional, List, TYPE_CHECKING
import platform as platform_module

import distro as distro_lib

from pantry.transport.base import NullTransport

if TYPE_CHECKING:
    from pantry.cookbook import Cookbook
    from pantry.transport import Transport
    from pantry.values import ValueProvider


class Action(Enum):
    """Resource actions during apply."""
    NONE = "none"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class Change:
    """A single property change."""
    field: str
    from_value: Any
    to_value: Any

    def __str__(self):
        return f"{self.field}: {self.from_value} → {self.to_value}"


@dataclass
class Plan:
    """What apply() will do to one resource, and why."""
    action: Action
    changes: List[Change] = field(default_factory=list)
    reason: str = ""

    def has_changes(self) -> bool:
        return self.action != Action.NONE and len(self.changes) > 0

    def __str__(self):
        if self.action == Action.NONE:
            return "No changes"

        lines = [f"Action: {self.action.value}"]
        if self.reason:
            lines.append(f"Reason: {self.reason}")
        for change in self.changes:
            lines.append(f"  {change}")
        return "\n".join(lines)


def _parse_os_release(content: str) -> Dict[str, str]:
    values = {}
    for line in content.splitlines():
        if "=" not in line:
            continue
        key, _, value = line.partition("=")
        values[key.strip()] = value.strip().strip('"')
    return values


@dataclass
class Platform:
    """Platform information (OS, distro, version)."""
    system: str  # Linux, Darwin
    distro: str  # ubuntu, debian, fedora, ...
    version: str
    arch: str

    @classmethod
    def detect(cls, transport: Optional["Transport"] = None) -> "Platform":
        """
        Detect platform information.

        Args:
            transport: Transport to detect through (None = this machine)
        """
        if transport is None:
            system = platform_module.system()
            arch = platform_module.machine()
            distro = "unknown"
            version = ""

            if system == "Linux":
                distro = distro_lib.id() or "unknown"
                version = distro_lib.version()
            elif system == "Darwin":
                distro = "macos"
                version = platform_module.mac_ver()[0]

            return cls(system=system, distro=distro, version=version, arch=arch)

        output, _ = transport.run_shell("uname -s")
        system = output.strip()
        output, _ = transport.run_shell("uname -m")
        arch = output.strip()
        distro = "unknown"
        version = ""

        if system == "Linux":
            if transport.file_exists("/etc/os-release"):
                release = _parse_os_release(transport.read_file("/etc/os-release").decode())
                distro = release.get("ID", "unknown")
                version = release.get("VERSION_ID", "")
        elif system == "Darwin":
            distro = "macos"
            output, _ = transport.run_shell("sw_vers -productVersion")
            version = output.strip()

        return cls(system=system, distro=distro, version=version, arch=arch)


class Resource(ABC):
    """
    Base class for all resources.

    Resources follow the Check → Plan → Apply pattern:
    1. Check: Inspect current state on the target
    2. Plan: Determine what needs to change
    3. Apply: Make the changes
    """

    def __init__(self, name: str, **options):
        """
        Args:
            name: Resource identifier (e.g., "/app_setup.txt", "cron")
            **options: Resource-specific options
        """
        if not isinstance(name, str) or not name.strip():
            raise ValueError(f"{self.__class__.__name__} name must be a non-empty string")

        self.name = name
        self.options = options
        self._desired_state: Dict[str, Any] = {}
        self._actual_state: Dict[str, Any] = {}

        # Bound by Executor.add()
        self._transport: "Transport" = NullTransport()
        self._cookbook: Optional["Cookbook"] = None
        self._values: Optional["ValueProvider"] = None

    @property
    def id(self) -> str:
        """
        Unique resource identifier, ``<type>:<name>``.

        Example: file:/app_setup.txt, pkg:cron
        """
        return f"{self.resource_type()}:{self.name}"

    @abstractmethod
    def resource_type(self) -> str:
        """Return resource type string (pkg, file, template)."""
        pass

    @abstractmethod
    def check(self, platform: Platform) -> Dict[str, Any]:
        """
        Inspect the target and return the current state.

        Example:
            {"exists": True, "checksum": "...", "mode": 0o644}
        """
        pass

    @abstractmethod
    def desired_state(self) -> Dict[str, Any]:
        """Return desired state properties, same keys as check()."""
        pass

    def plan(self, platform: Platform) -> Plan:
        """Compare desired and actual state and return a Plan."""
        self._actual_state = self.check(platform)
        self._desired_state = self.desired_state()

        exists = self._actual_state.get("exists", False)
        should_exist = self._desired_state.get("exists", True)

        if not exists and should_exist:
            action = Action.CREATE
            reason = "Resource does not exist"
        elif exists and not should_exist:
            action = Action.DELETE
            reason = "Resource should not exist"
        elif not exists and not should_exist:
            action = Action.NONE
            reason = "Resource correctly absent"
        else:
            changes = self._detect_changes()
            if changes:
                return Plan(
                    action=Action.UPDATE,
                    changes=changes,
                    reason="Properties differ from desired state",
                )
            action = Action.NONE
            reason = "No changes needed"

        changes = []
        if action == Action.CREATE:
            for key, value in self._desired_state.items():
                if key != "exists" and value is not None:
                    changes.append(Change(key, None, value))
            if not changes:
                changes.append(Change("exists", False, True))
        elif action == Action.DELETE:
            changes.append(Change("exists", True, False))

        return Plan(action=action, changes=changes, reason=reason)

    def _detect_changes(self) -> List[Change]:
        changes = []

        for key, desired_value in self._desired_state.items():
            if key == "exists" or desired_value is None:
                continue

            actual_value = self._actual_state.get(key)
            if actual_value != desired_value:
                changes.append(Change(key, actual_value, desired_value))

        return changes

    @abstractmethod
    def apply(self, plan: Plan, platform: Platform) -> None:
        """
        Apply the plan from plan().

        Raises:
            PantryError (or a builtin OSError) if apply fails
        """
        pass

    def __repr__(self):
        return f"{self.__class__.__name__}(name={self.name!r})"

    def __str__(self):
        return self.id
