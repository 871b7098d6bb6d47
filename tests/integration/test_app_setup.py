"""
Integration tests for the shipped app_setup recipe.

The real recipe file is loaded and converged against a MockTransport
standing in for a fresh Debian host.
"""

import re
from pathlib import Path

import pytest

from pantry.cookbook import load_recipes
from pantry.core import Executor, Outcome
from pantry.values import RandomValues, SeededValues, StoredValues

COOKBOOK = Path(__file__).resolve().parents[2] / "cookbooks" / "testproject"
APP_SETUP = COOKBOOK / "recipes" / "app_setup.py"

QUX_RE = re.compile(rb"^qux [0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\n$")


def converge(transport, platform, values):
    executor = Executor(platform=platform, transport=transport, values=values)
    for recipe in load_recipes(APP_SETUP):
        executor.load(recipe)
    return executor.converge()


class TestFreshHost:
    """Recipe applied once to a fresh system."""

    def test_all_resources_converge(self, mock_transport, platform):
        result = converge(mock_transport, platform, RandomValues())

        assert result.success
        assert result.outcomes == {
            "pkg:cron": Outcome.CONVERGED,
            "file:/app_setup.txt": Outcome.CONVERGED,
            "template:/qux.txt": Outcome.CONVERGED,
        }

    def test_cron_installed(self, mock_transport, platform):
        converge(mock_transport, platform, RandomValues())

        assert "cron" in mock_transport.packages

    def test_app_setup_file(self, mock_transport, platform):
        converge(mock_transport, platform, RandomValues())

        expected = (COOKBOOK / "files" / "app_setup" / "qux.txt").read_bytes()
        assert mock_transport.files["/app_setup.txt"] == expected
        meta = mock_transport.meta["/app_setup.txt"]
        assert meta["owner"] == "root"
        assert meta["group"] == "root"
        assert meta["mode"] == 0o777

    def test_qux_rendered_with_uuid(self, mock_transport, platform):
        converge(mock_transport, platform, RandomValues())

        assert QUX_RE.match(mock_transport.files["/qux.txt"])


class TestSecondRun:
    """Recipe applied twice in succession."""

    def test_random_values_rerender_template(self, mock_transport, platform):
        converge(mock_transport, platform, RandomValues())
        first_qux = mock_transport.files["/qux.txt"]
        first_file = mock_transport.files["/app_setup.txt"]

        result = converge(mock_transport, platform, RandomValues())

        # /qux.txt is not idempotent under RandomValues: a new UUID every run
        assert result.outcomes["pkg:cron"] == Outcome.COMPLIANT
        assert result.outcomes["file:/app_setup.txt"] == Outcome.COMPLIANT
        assert result.outcomes["template:/qux.txt"] == Outcome.CONVERGED
        assert mock_transport.files["/app_setup.txt"] == first_file
        assert mock_transport.files["/qux.txt"] != first_qux
        assert QUX_RE.match(mock_transport.files["/qux.txt"])

    @pytest.mark.parametrize("make_values", [
        lambda store: SeededValues("staging"),
        lambda store: StoredValues(store),
    ], ids=["seeded", "stored"])
    def test_stable_values_are_idempotent(self, mock_transport, platform, store, make_values):
        converge(mock_transport, platform, make_values(store))
        first_qux = mock_transport.files["/qux.txt"]

        result = converge(mock_transport, platform, make_values(store))

        assert set(result.outcomes.values()) == {Outcome.COMPLIANT}
        assert mock_transport.files["/qux.txt"] == first_qux


class TestFailures:
    """Failures surface per resource without stopping the run."""

    def test_unknown_root_group(self, mock_transport, platform):
        mock_transport.groups.discard("root")

        result = converge(mock_transport, platform, RandomValues())

        assert result.outcomes["file:/app_setup.txt"] == Outcome.FAILED
        assert result.outcomes["pkg:cron"] == Outcome.CONVERGED
        assert result.outcomes["template:/qux.txt"] == Outcome.CONVERGED
        assert "/app_setup.txt" not in mock_transport.files

    def test_package_unavailable(self, mock_transport, platform):
        mock_transport.available.clear()

        result = converge(mock_transport, platform, RandomValues())

        assert result.outcomes["pkg:cron"] == Outcome.FAILED
        assert isinstance(result.errors["pkg:cron"], FileNotFoundError)
        assert not result.success
