"""
Cookbooks and recipes.

A cookbook is a directory:

    testproject/
        recipes/app_setup.py
        files/app_setup/qux.txt
        templates/app_setup/qux.txt.j2

A recipe is an ordered list of resource declarations. Source references
in those declarations are relative to the cookbook's files/ and
templates/ directories and are resolved only when the executor evaluates
the resource.
"""

import importlib.util
from pathlib import Path
from typing import Iterator, List, Optional, Union

from pantry.core.resource import Resource
from pantry.errors import ResolutionError


class Cookbook:
    """Source lookup scoped to one cookbook directory."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()

    @classmethod
    def for_recipe(cls, recipe_path: Union[str, Path]) -> "Cookbook":
        """
        Find the cookbook a recipe file belongs to.

        recipes/<name>.py lives one level below the cookbook root; a recipe
        outside a recipes/ directory uses its own directory as the root.
        """
        parent = Path(recipe_path).resolve().parent
        if parent.name == "recipes":
            return cls(parent.parent)
        return cls(parent)

    @property
    def name(self) -> str:
        return self.root.name

    @property
    def files_dir(self) -> Path:
        return self.root / "files"

    @property
    def template_dir(self) -> Path:
        return self.root / "templates"

    def _lookup(self, base: Path, ref: str, kind: str) -> Path:
        if not ref or Path(ref).is_absolute():
            raise ResolutionError(f"Invalid {kind} reference {ref!r}: must be relative to the cookbook")

        path = (base / ref).resolve()
        if base.resolve() not in path.parents:
            raise ResolutionError(f"{kind.capitalize()} reference {ref!r} escapes cookbook {self.name}")
        if not path.is_file():
            raise ResolutionError(f"{kind.capitalize()} not found in cookbook {self.name}: {ref}")
        return path

    def file(self, ref: str) -> Path:
        """Resolve a cookbook file reference to a path under files/."""
        return self._lookup(self.files_dir, ref, "file")

    def template(self, ref: str) -> Path:
        """Resolve a template reference to a path under templates/."""
        return self._lookup(self.template_dir, ref, "template")

    def __repr__(self):
        return f"Cookbook({str(self.root)!r})"


class Recipe:
    """
    Ordered, inert list of resource declarations.

    Example:
        recipe = Recipe("app_setup", cookbook=Cookbook.for_recipe(__file__))
        recipe.add(AptPackage("cron"))
    """

    def __init__(self, name: str, cookbook: Optional[Cookbook] = None):
        self.name = name
        self.cookbook = cookbook
        self.resources: List[Resource] = []

    @property
    def id(self) -> str:
        if self.cookbook is None:
            return self.name
        return f"{self.cookbook.name}::{self.name}"

    def add(self, resource: Resource) -> Resource:
        if any(existing.id == resource.id for existing in self.resources):
            raise ValueError(f"Duplicate resource in recipe {self.id}: {resource.id}")
        self.resources.append(resource)
        return resource

    def __iter__(self) -> Iterator[Resource]:
        return iter(self.resources)

    def __len__(self) -> int:
        return len(self.resources)

    def __repr__(self):
        return f"Recipe({self.id!r}, resources={len(self.resources)})"


def load_recipes(recipe_file: Union[str, Path]) -> List[Recipe]:
    """
    Execute a recipe file and return the Recipe objects it defines.

    Raises:
        ValueError: If the file can't be loaded or defines no Recipe
    """
    path = Path(recipe_file).resolve()

    spec = importlib.util.spec_from_file_location(f"pantry_recipe_{path.stem}", path)
    if spec is None or spec.loader is None:
        raise ValueError(f"Could not load recipe file: {recipe_file}")

    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    recipes = [value for value in vars(module).values() if isinstance(value, Recipe)]
    if not recipes:
        raise ValueError(f"No Recipe defined in {recipe_file}")
    return recipes
