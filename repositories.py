"""
Storage seams for ledgers and recipes.

The engine functions take plain records and never call these. The
application layer owns a repository, reads a consistent snapshot out of it
and passes that snapshot into aggregate() / build_menu_engineering().
"""

from abc import ABC, abstractmethod
from dataclasses import replace
from typing import List

from costing_module import RecipeCard
from ledger_module import ENTRY_TYPES


class LedgerRepository(ABC):
    @abstractmethod
    def append(self, user_id: str, entry) -> None:
        ...

    @abstractmethod
    def delete(self, user_id: str, kind: str, entry_id: str) -> bool:
        ...

    @abstractmethod
    def list(self, user_id: str, kind: str) -> list:
        ...

    @abstractmethod
    def all_entries(self, user_id: str) -> dict[str, list]:
        ...


class RecipeRepository(ABC):
    @abstractmethod
    def save(self, user_id: str, recipe: RecipeCard) -> None:
        ...

    @abstractmethod
    def get(self, user_id: str, sku_id: str) -> RecipeCard | None:
        ...

    @abstractmethod
    def list(self, user_id: str) -> List[RecipeCard]:
        ...

    @abstractmethod
    def toggle_essential(self, user_id: str, sku_id: str) -> RecipeCard:
        ...


class InMemoryLedgerRepository(LedgerRepository):
    """Entries per user, newest first within each kind."""

    def __init__(self):
        self._store: dict[str, dict[str, list]] = {}

    def _ledgers(self, user_id: str) -> dict[str, list]:
        return self._store.setdefault(user_id, {kind: [] for kind in ENTRY_TYPES})

    @staticmethod
    def _check_kind(kind: str) -> None:
        if kind not in ENTRY_TYPES:
            raise ValueError(f"Unknown ledger kind '{kind}'. Expected one of {list(ENTRY_TYPES)}")

    def append(self, user_id: str, entry) -> None:
        kind = getattr(entry, "kind", None)
        self._check_kind(kind)
        self._ledgers(user_id)[kind].insert(0, entry)

    def delete(self, user_id: str, kind: str, entry_id: str) -> bool:
        self._check_kind(kind)
        entries = self._ledgers(user_id)[kind]
        kept = [e for e in entries if e.id != entry_id]
        self._ledgers(user_id)[kind] = kept
        return len(kept) != len(entries)

    def list(self, user_id: str, kind: str) -> list:
        self._check_kind(kind)
        return list(self._ledgers(user_id)[kind])

    def all_entries(self, user_id: str) -> dict[str, list]:
        return {kind: list(entries) for kind, entries in self._ledgers(user_id).items()}


class InMemoryRecipeRepository(RecipeRepository):
    """Recipes per user keyed by sku_id; saving an existing sku replaces it."""

    def __init__(self):
        self._store: dict[str, dict[str, RecipeCard]] = {}

    def save(self, user_id: str, recipe: RecipeCard) -> None:
        self._store.setdefault(user_id, {})[recipe.sku_id] = recipe

    def get(self, user_id: str, sku_id: str) -> RecipeCard | None:
        return self._store.get(user_id, {}).get(sku_id)

    def list(self, user_id: str) -> List[RecipeCard]:
        return list(self._store.get(user_id, {}).values())

    def toggle_essential(self, user_id: str, sku_id: str) -> RecipeCard:
        recipe = self.get(user_id, sku_id)
        if recipe is None:
            raise KeyError(f"No recipe '{sku_id}' for user '{user_id}'")
        updated = replace(recipe, is_essential=not recipe.is_essential)
        self.save(user_id, updated)
        return updated
