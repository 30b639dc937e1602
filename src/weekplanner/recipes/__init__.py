"""Recipe catalog integrations."""

from weekplanner.recipes.client import HttpRecipeCatalog, InMemoryRecipeCatalog, RecipeCatalog

__all__ = [
    "HttpRecipeCatalog",
    "InMemoryRecipeCatalog",
    "RecipeCatalog",
]
