__version__ = "0.1.0"

from pantry.core import Resource, Plan, Action, Platform, Executor, Outcome
from pantry.cookbook import Cookbook, Recipe, load_recipes
from pantry.resources.pkg import Package, AptPackage
from pantry.resources.file import CookbookFile
from pantry.resources.template import Template
from pantry.values import (
    ValueProvider,
    RandomValues,
    SeededValues,
    StoredValues,
    generated_uuid,
)
from pantry.logging import get_logger, get_pantry_logger, setup_logging

"""
Foundations of Pantry:
    Resource is a single desired-state declaration about a host.
    Recipe is an ordered list of resources from one cookbook.
    Executor plans and applies recipes against a target, idempotently.
    Package ensures a system package is installed or absent.
    CookbookFile deploys a file verbatim from the cookbook.
    Template renders a cookbook template with bound variables.
    ValueProvider supplies generated values (UUIDs) to templates.
"""

__all__ = [
    "Resource",
    "Plan",
    "Action",
    "Platform",
    "Executor",
    "Outcome",
    "Cookbook",
    "Recipe",
    "load_recipes",
    "Package",
    "AptPackage",
    "CookbookFile",
    "Template",
    "ValueProvider",
    "RandomValues",
    "SeededValues",
    "StoredValues",
    "generated_uuid",
    "get_logger",
    "get_pantry_logger",
    "setup_logging",
]
