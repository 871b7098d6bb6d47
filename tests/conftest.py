"""
Shared fixtures for Pantry tests.

MockTransport stands in for a Debian-like host so resources can be planned
and applied without root or a real package manager.
"""

import shlex

import pytest

from pantry.cookbook import Cookbook
from pantry.core import Platform
from pantry.state import Store


class MockTransport:
    """In-memory host: files with metadata, users, groups and dpkg packages."""

    def __init__(self):
        self.files = {}
        self.meta = {}
        self.commands = []
        self.shells = []
        self.users = {"root", "www-data"}
        self.groups = {"root", "www-data"}
        self.packages = {}
        # dpkg status overrides, e.g. "hold ok installed"
        self.dpkg_status = {}
        self.available = {"cron": "3.0pl1-137ubuntu3"}
        self.missing_binaries = set()
        self.install_result = None
        self.read_only = set()

    def file_exists(self, path):
        return path in self.files

    def read_file(self, path):
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    def write_file(self, path, content):
        if path in self.read_only:
            raise PermissionError(13, "Permission denied", path)
        self.files[path] = content
        self.meta.setdefault(path, {"mode": 0o644, "owner": "nobody", "group": "nogroup", "touched": 0})

    def run_shell(self, cmd):
        self.shells.append(cmd)
        if cmd.startswith("stat "):
            path = shlex.split(cmd)[3]
            meta = self.meta.get(path)
            if meta is None:
                return ("stat: cannot statx", 1)
            return (f"regular file|{meta['mode']:o}|{meta['owner']}|{meta['group']}", 0)
        if cmd == "uname -s":
            return ("Linux\n", 0)
        if cmd == "uname -m":
            return ("x86_64\n", 0)
        return ("", 0)

    def run_command(self, args):
        self.commands.append(list(args))
        cmd, rest = args[0], args[1:]

        if cmd in self.missing_binaries:
            return (f"{cmd}: command not found", 127)
        if cmd == "id":
            return ("0", 0) if rest[-1] in self.users else (f"id: '{rest[-1]}': no such user", 1)
        if cmd == "getent":
            return ("root:x:0:", 0) if rest[-1] in self.groups else ("", 2)
        if cmd == "dscl":
            group = rest[2].rsplit("/", 1)[-1]
            if group in self.groups:
                return ("PrimaryGroupID: 0", 0)
            return ("<dscl_cmd> DS Error: -14136 (eDSRecordNotFound)", 56)
        if cmd == "chown":
            owner, _, group = rest[0].partition(":")
            self.meta[rest[1]]["owner"] = owner
            if group:
                self.meta[rest[1]]["group"] = group
            return ("", 0)
        if cmd == "chgrp":
            self.meta[rest[1]]["group"] = rest[0]
            return ("", 0)
        if cmd == "chmod":
            self.meta[rest[1]]["mode"] = int(rest[0], 8)
            return ("", 0)
        if cmd == "touch":
            self.meta[rest[0]]["touched"] += 1
            return ("", 0)
        if cmd == "rm":
            self.files.pop(rest[-1], None)
            self.meta.pop(rest[-1], None)
            return ("", 0)
        if cmd == "dpkg-query":
            name = rest[-1]
            if name in self.packages:
                status = self.dpkg_status.get(name, "install ok installed")
                return (f"{status} {self.packages[name]}", 0)
            return (f"dpkg-query: no packages found matching {name}", 1)
        if cmd == "apt-cache":
            name = rest[-1]
            return (f"{name}:\n  Installed: (none)\n  Candidate: {self.available.get(name, '(none)')}\n", 0)
        if cmd == "env" and "apt-get" in args:
            return self._apt_get(args[args.index("apt-get") + 1:])

        return ("", 0)

    def _apt_get(self, args):
        if self.install_result is not None:
            return self.install_result

        verb, name = args[0], args[-1].split("=")[0]
        if verb == "install":
            if name not in self.available:
                return (f"E: Unable to locate package {name}", 100)
            self.packages[name] = self.available[name]
        elif verb == "remove":
            self.packages.pop(name, None)
        return ("", 0)

    def close(self):
        pass


@pytest.fixture
def mock_transport():
    return MockTransport()


@pytest.fixture
def platform():
    return Platform(system="Linux", distro="ubuntu", version="22.04", arch="x86_64")


@pytest.fixture
def cookbook(tmp_path):
    """A throwaway cookbook with one file and two templates."""
    root = tmp_path / "cookbooks" / "testproject"
    (root / "recipes").mkdir(parents=True)
    (root / "files" / "app_setup").mkdir(parents=True)
    (root / "templates" / "app_setup").mkdir(parents=True)

    (root / "files" / "app_setup" / "qux.txt").write_bytes(b"qux\n\x00binary-safe\n")
    (root / "templates" / "app_setup" / "qux.txt.j2").write_text("qux {{ var }}\n")
    (root / "templates" / "app_setup" / "two.txt.j2").write_text("{{ var }} and {{ other }}\n")

    return Cookbook(root)


@pytest.fixture
def store(tmp_path):
    with Store(str(tmp_path / "state.db")) as s:
        yield s
