"""
Package resource - ensure a system package is installed or absent.

Supports:
- apt (Debian/Ubuntu)
- dnf (Fedora/RHEL)
- pacman (Arch)
- brew (macOS)
"""

import re
from typing import Dict, Any, List, Optional

from pantry.core.resource import Resource, Plan, Action, Platform
from pantry.errors import PackageError, PermissionDenied, ResolutionError
from pantry.logging import get_logger

logger = get_logger(__name__)

PROVIDERS = ("apt", "dnf", "pacman", "brew")

# Package manager output that means "no such package in any repository"
_NOT_FOUND = re.compile(
    r"Unable to locate package|has no installation candidate|No match for argument"
    r"|target not found|No available formula|No formulae found",
    re.IGNORECASE,
)
_DENIED = re.compile(
    r"Permission denied|are you root|must be run as root|Could not open lock"
    r"|you need to be root|This command has to be run",
    re.IGNORECASE,
)


class Package(Resource):
    """
    Package resource for installing system packages.

    Examples:
        Package("cron")
        Package("nginx", version="1.18.0-6ubuntu14")
        Package("apache2", ensure="absent")
        Package("cron", provider="apt")
    """

    def __init__(
        self,
        name: str,
        ensure: str = "present",  # "present", "absent", "latest"
        version: Optional[str] = None,
        provider: Optional[str] = None,
        **options
    ):
        """
        Args:
            name: Package name
            ensure: "present", "absent", or "latest"
            version: Specific version to install
            provider: Force a package manager instead of detecting it
        """
        super().__init__(name, **options)

        if ensure not in ("present", "absent", "latest"):
            raise ValueError(f"Invalid ensure for package {name}: {ensure!r}")
        if provider is not None and provider not in PROVIDERS:
            raise ValueError(f"Unknown package provider: {provider!r}")

        self.package_name = name
        self.ensure = ensure
        self.version = version
        self.provider = provider
        self._package_manager: Optional[str] = None

    def resource_type(self) -> str:
        return "pkg"

    def check(self, platform: Platform) -> Dict[str, Any]:
        pm = self._get_package_manager(platform)
        self._package_manager = pm
        version = self._installed_version(pm)
        return {
            "exists": version is not None,
            "version": version,
        }

    def desired_state(self) -> Dict[str, Any]:
        version = self.version
        if self.ensure == "latest" and self._actual_state.get("exists"):
            version = self._candidate_version()

        return {
            "exists": self.ensure != "absent",
            "version": version,
        }

    def apply(self, plan: Plan, platform: Platform) -> None:
        pm = self._get_package_manager(platform)

        if plan.action in (Action.CREATE, Action.UPDATE):
            logger.info("Installing %s with %s", self.package_name, pm)
            self._run(self._install_command(pm), "installation")
        elif plan.action == Action.DELETE:
            logger.info("Removing %s with %s", self.package_name, pm)
            self._run(self._remove_command(pm), "removal")

    def _get_package_manager(self, platform: Platform) -> str:
        if self.provider:
            return self.provider
        if platform.distro in ["ubuntu", "debian"]:
            return "apt"
        elif platform.distro in ["fedora", "rhel", "centos", "rocky", "almalinux"]:
            return "dnf"
        elif platform.distro == "arch":
            return "pacman"
        elif platform.system == "Darwin":
            return "brew"
        raise PackageError(f"Unsupported platform for packages: {platform.distro}")

    def _installed_version(self, pm: str) -> Optional[str]:
        """Return the installed version, or None if not installed."""
        pkg = self.package_name

        if pm == "apt":
            output, code = self._transport.run_command(
                ["dpkg-query", "-W", "-f=${Status} ${Version}", pkg]
            )
            # Status is "<want> ok installed"; want is install or hold.
            # Removed-but-not-purged packages still have a dpkg record
            parts = output.split()
            if code != 0 or parts[1:3] != ["ok", "installed"]:
                return None
            return parts[3] if len(parts) > 3 else None

        elif pm == "dnf":
            output, code = self._transport.run_command(
                ["rpm", "-q", "--queryformat", "%{VERSION}-%{RELEASE}", pkg]
            )
            return output.strip() if code == 0 else None

        elif pm == "pacman":
            output, code = self._transport.run_command(["pacman", "-Q", pkg])
            if code == 0:
                parts = output.strip().split()
                return parts[1] if len(parts) > 1 else None
            return None

        elif pm == "brew":
            output, code = self._transport.run_command(["brew", "list", "--versions", pkg])
            if code == 0:
                parts = output.strip().split()
                return parts[1] if len(parts) > 1 else None
            return None

        raise PackageError(f"Unknown package manager: {pm}")

    def _candidate_version(self) -> Optional[str]:
        """Newest version apt would install; None where unknown."""
        if self._package_manager != "apt":
            return None

        output, code = self._transport.run_command(["apt-cache", "policy", self.package_name])
        if code != 0:
            return None
        for line in output.splitlines():
            line = line.strip()
            if line.startswith("Candidate:"):
                candidate = line.split(":", 1)[1].strip()
                return None if candidate == "(none)" else candidate
        return None

    def _package_spec(self, pm: str) -> str:
        if not self.version:
            return self.package_name
        if pm == "apt":
            return f"{self.package_name}={self.version}"
        if pm == "dnf":
            return f"{self.package_name}-{self.version}"
        # pacman and brew install whatever the repository has
        return self.package_name

    def _install_command(self, pm: str) -> List[str]:
        spec = self._package_spec(pm)
        if pm == "apt":
            return ["env", "DEBIAN_FRONTEND=noninteractive",
                    "apt-get", "install", "-y", "-q", spec]
        elif pm == "dnf":
            return ["dnf", "install", "-y", spec]
        elif pm == "pacman":
            return ["pacman", "-S", "--noconfirm", "--needed", spec]
        return ["brew", "install", spec]

    def _remove_command(self, pm: str) -> List[str]:
        if pm == "apt":
            return ["env", "DEBIAN_FRONTEND=noninteractive",
                    "apt-get", "remove", "-y", "-q", self.package_name]
        elif pm == "dnf":
            return ["dnf", "remove", "-y", self.package_name]
        elif pm == "pacman":
            return ["pacman", "-R", "--noconfirm", self.package_name]
        return ["brew", "uninstall", self.package_name]

    def _run(self, cmd: List[str], what: str) -> None:
        output, code = self._transport.run_command(cmd)
        if code == 0:
            return

        detail = output.strip()
        if _NOT_FOUND.search(output):
            raise ResolutionError(f"Package {self.package_name} not found: {detail}")
        if _DENIED.search(output):
            raise PermissionDenied(f"Package {what} of {self.package_name} denied: {detail}")
        raise PackageError(f"Package {what} failed for {self.package_name}: {detail}")


class AptPackage(Package):
    """Package pinned to the apt provider."""

    def __init__(self, name: str, **options):
        options.setdefault("provider", "apt")
        super().__init__(name, **options)
