"""
File resources - deploy files from a cookbook onto the target.

ManagedFile holds everything a deployed file has in common (content,
owner, group, mode and the action verb); CookbookFile takes its content
verbatim from the cookbook's files/ directory. Template, in
pantry.resources.template, renders it instead.

Actions:
- create: content, owner, group and mode must match
- create_if_missing: only create the file when it is absent
- delete: the path must not exist
- touch: like create, and bump the modification time every run
"""

import hashlib
import re
import shlex
from typing import Dict, Any, Optional, Union

from pantry.core.resource import Resource, Plan, Action, Change, Platform
from pantry.errors import PermissionDenied, ResolutionError, UnknownIdentity
from pantry.logging import get_logger

logger = get_logger(__name__)

ACTIONS = ("create", "create_if_missing", "delete", "touch")

_OCTAL_MODE = re.compile(r"^[0-7]{3,4}$")


def parse_mode(mode: Union[str, int, None]) -> Optional[int]:
    """
    Normalize a permission mode to an int.

    Accepts "0777", "644" or 0o644. Symbolic modes are not supported.
    """
    if mode is None:
        return None
    if isinstance(mode, bool):
        raise ValueError(f"Invalid file mode: {mode!r}")
    if isinstance(mode, int):
        if not 0 <= mode <= 0o7777:
            raise ValueError(f"Invalid file mode: {oct(mode)}")
        return mode
    if isinstance(mode, str) and _OCTAL_MODE.match(mode):
        return int(mode, 8)
    raise ValueError(f"Invalid file mode: {mode!r} (expected octal like '0644')")


def checksum(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


class ManagedFile(Resource):
    """Base for resources that own the content and metadata of one file."""

    def __init__(
        self,
        path: str,
        source: str,
        owner: Optional[str] = None,
        group: Optional[str] = None,
        mode: Union[str, int, None] = None,
        action: str = "create",
        **options
    ):
        """
        Args:
            path: Absolute target path
            source: Cookbook-relative reference to the content source
            owner: Owner username
            group: Group name
            mode: Permission mode, "0644" or 0o644
            action: create, create_if_missing, delete or touch
        """
        super().__init__(path, **options)

        if action not in ACTIONS:
            raise ValueError(f"Invalid action for {path}: {action!r} (expected one of {', '.join(ACTIONS)})")
        if action != "delete" and not source:
            raise ValueError(f"{self.__class__.__name__} {path} needs a source")

        self.path = path
        self.source = source
        self.owner = owner
        self.group = group
        self.mode = parse_mode(mode)
        self.action = action
        self._content: Optional[bytes] = None
        self._platform: Optional[Platform] = None

    def render(self) -> bytes:
        """Produce the desired file content."""
        raise NotImplementedError

    def check(self, platform: Platform) -> Dict[str, Any]:
        state = {
            "exists": False,
            "type": None,
            "checksum": None,
            "mode": None,
            "owner": None,
            "group": None,
        }

        if not self._transport.file_exists(self.path):
            return state

        state["exists"] = True

        quoted = shlex.quote(self.path)
        output, code = self._transport.run_shell(
            f"stat -c '%F|%a|%U|%G' {quoted} 2>/dev/null || stat -f '%HT|%Lp|%Su|%Sg' {quoted}"
        )
        if code == 0:
            parts = output.strip().split("|")
            if len(parts) >= 4:
                file_type, mode_octal, owner, group = parts[:4]

                file_type = file_type.lower()
                if "regular" in file_type:
                    state["type"] = "file"
                elif "directory" in file_type:
                    state["type"] = "directory"
                elif "symbolic link" in file_type:
                    state["type"] = "symlink"

                try:
                    state["mode"] = int(mode_octal, 8)
                except ValueError:
                    pass

                state["owner"] = owner
                state["group"] = group

        if state["type"] == "file":
            try:
                state["checksum"] = checksum(self._transport.read_file(self.path))
            except OSError:
                # Unreadable for us; content will be rewritten
                state["checksum"] = None

        return state

    def desired_state(self) -> Dict[str, Any]:
        if self.action == "delete":
            return {"exists": False}

        if self.action == "create_if_missing" and self._actual_state.get("exists"):
            return {"exists": True}

        self._validate_identities()
        self._content = self.render()

        return {
            "exists": True,
            "type": "file",
            "checksum": checksum(self._content),
            "mode": self.mode,
            "owner": self.owner,
            "group": self.group,
        }

    def plan(self, platform: Platform) -> Plan:
        self._platform = platform
        plan = super().plan(platform)
        if self.action != "touch":
            return plan

        touch = Change("mtime", "unchanged", "now")
        if plan.action == Action.NONE:
            return Plan(action=Action.UPDATE, changes=[touch], reason="Touch updates modification time")
        if plan.action == Action.UPDATE:
            plan.changes.append(touch)
        return plan

    def apply(self, plan: Plan, platform: Platform) -> None:
        if plan.action == Action.DELETE:
            self._run(["rm", "-rf", self.path], "remove")
        elif plan.action == Action.CREATE:
            self._write()
            self._set_metadata()
        elif plan.action == Action.UPDATE:
            self._update(plan)

    def _update(self, plan: Plan) -> None:
        fields = {change.field for change in plan.changes}

        if "type" in fields:
            # A directory or symlink sits where the file belongs
            self._run(["rm", "-rf", self.path], "replace")
            self._write()
            self._set_metadata()
            return

        if "checksum" in fields:
            self._write()
        if "owner" in fields or "group" in fields:
            self._chown()
        if "mode" in fields:
            self._chmod()
        if "mtime" in fields:
            self._run(["touch", self.path], "touch")

    def _write(self) -> None:
        if self._content is None:
            self._content = self.render()
        try:
            self._transport.write_file(self.path, self._content)
        except OSError as e:
            raise PermissionDenied(f"Cannot write {self.path}: {e}") from e
        logger.debug("Wrote %d bytes to %s", len(self._content), self.path)

    def _set_metadata(self) -> None:
        self._chown()
        self._chmod()

    def _chown(self) -> None:
        if self.owner is not None and self.group is not None:
            self._run(["chown", f"{self.owner}:{self.group}", self.path], "chown")
        elif self.owner is not None:
            self._run(["chown", self.owner, self.path], "chown")
        elif self.group is not None:
            self._run(["chgrp", self.group, self.path], "chgrp")

    def _chmod(self) -> None:
        if self.mode is not None:
            self._run(["chmod", format(self.mode, "o"), self.path], "chmod")

    def _run(self, args, what: str) -> None:
        output, code = self._transport.run_command(args)
        if code != 0:
            raise PermissionDenied(f"Cannot {what} {self.path}: {output.strip()}")

    def _validate_identities(self) -> None:
        """Fail before writing anything if owner or group is unknown on the target."""
        if self.owner is not None:
            _, code = self._transport.run_command(["id", "-u", self.owner])
            if code != 0:
                raise UnknownIdentity("owner", self.owner)
        if self.group is not None:
            _, code = self._transport.run_command(self._group_lookup(self.group))
            if code != 0:
                raise UnknownIdentity("group", self.group)

    def _group_lookup(self, group: str):
        # macOS keeps groups in Directory Services and ships no getent
        if self._platform is not None and self._platform.system == "Darwin":
            return ["dscl", ".", "-read", f"/Groups/{group}", "PrimaryGroupID"]
        return ["getent", "group", group]


class CookbookFile(ManagedFile):
    """
    A file copied byte-for-byte from the cookbook's files/ directory.

    Example:
        CookbookFile("/app_setup.txt",
                     source="app_setup/qux.txt",
                     owner="root",
                     group="root",
                     mode="0777",
                     action="create")
    """

    def resource_type(self) -> str:
        return "file"

    def render(self) -> bytes:
        if self._cookbook is None:
            raise ResolutionError(f"{self.id}: no cookbook to resolve {self.source!r} against")

        path = self._cookbook.file(self.source)
        try:
            return path.read_bytes()
        except OSError as e:
            raise ResolutionError(f"Cannot read cookbook file {self.source}: {e}") from e
