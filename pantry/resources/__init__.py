"""
Resource types a recipe can declare.
"""

from pantry.resources.pkg import Package, AptPackage
from pantry.resources.file import CookbookFile, ManagedFile
from pantry.resources.template import Template

__all__ = ["Package", "AptPackage", "CookbookFile", "ManagedFile", "Template"]
