"""
recipe_book.py - Recipes and the in-memory recipe registry.

A recipe is an ordered chain of transformation steps applied left to right:
the output of each step is the input of the next. At most one recipe in the
registry is active; the active recipe is what the clipboard monitor applies
to every clipboard change.

Every mutating registry call persists the whole registry through the store
before returning. A failed save is raised to the caller, but the in-memory
change is kept.
"""

import copy
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from clip_errors import RecipeNotFoundError, RecipeStoreError
from clip_transforms import Transformation

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Recipe:
    name:        str
    steps:       List[Transformation] = field(default_factory=list)
    description: Optional[str] = None
    icon:        Optional[str] = None
    hotkey:      Optional[str] = None
    active:      bool = False
    id:          str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at:  datetime = field(default_factory=_now)
    modified_at: datetime = field(default_factory=_now)

    def add_step(self, step: Transformation) -> "Recipe":
        self.steps.append(step)
        self.modified_at = _now()
        return self

    def apply(self, text: str) -> str:
        for step in self.steps:
            text = step.apply(text)
        return text

    def is_empty(self) -> bool:
        return not self.steps

    def copy(self) -> "Recipe":
        return copy.deepcopy(self)

    def chain_label(self) -> str:
        return " → ".join(step.kind for step in self.steps) or "—"


class ActiveRecipe:
    """
    The shared "currently active recipe" slot read by the monitor and
    replaced by the reload signal. ``get`` hands back a private copy, so the
    lock is only held for the copy and never while the caller does I/O.
    """

    def __init__(self, recipe: Optional[Recipe] = None):
        self._lock   = threading.Lock()
        self._recipe = recipe.copy() if recipe else None

    def get(self) -> Optional[Recipe]:
        with self._lock:
            return self._recipe.copy() if self._recipe else None

    def set(self, recipe: Optional[Recipe]):
        value = recipe.copy() if recipe else None
        with self._lock:
            self._recipe = value

    @property
    def name(self) -> Optional[str]:
        with self._lock:
            return self._recipe.name if self._recipe else None


# ─── Built-in recipes ─────────────────────────────────────────────────────────

def seed_recipes() -> List[Recipe]:
    """The recipes a fresh install starts with."""
    T = Transformation.of
    return [
        Recipe(
            "Plain Text",
            [T("strip_formatting"), T("fix_smart_quotes"), T("normalize_whitespace")],
            description="Strip all formatting and normalize whitespace",
            icon="📝",
        ),
        Recipe(
            "Clean Code",
            [T("fix_smart_quotes"), T("trim_lines"), T("to_unix_line_endings"),
             T("tabs_to_spaces", spaces=4)],
            description="Clean up code snippets",
            icon="💻",
        ),
        Recipe(
            "Unique Lines",
            [T("trim_lines"), T("remove_duplicate_lines"), T("remove_empty_lines")],
            description="Remove duplicate lines",
            icon="🔢",
        ),
        Recipe(
            "Sort Lines",
            [T("trim_lines"), T("sort_lines")],
            description="Sort lines alphabetically",
            icon="📊",
        ),
        Recipe(
            "Privacy Mode",
            [T("remove_emails"), T("remove_phone_numbers"), T("remove_urls")],
            description="Remove personal info like emails and phone numbers",
            icon="🔒",
        ),
        Recipe(
            "Academic",
            [T("fix_smart_quotes"), T("normalize_whitespace"), T("trim_lines")],
            description="Clean up academic text for citations",
            icon="📚",
        ),
        Recipe(
            "No Emoji",
            [T("remove_emojis")],
            description="Remove all emojis from text",
            icon="🚫",
        ),
    ]


# ─── Registry ─────────────────────────────────────────────────────────────────

class RecipeRegistry:
    """
    Ordered collection of recipes, unique by id.

    Built from ``store.load()``; when the store has nothing (or cannot be
    read) the built-in seed recipes are used instead.
    """

    def __init__(self, store):
        self._store   = store
        self._lock    = threading.RLock()
        self._recipes: List[Recipe] = self._initial_recipes()

    def _initial_recipes(self) -> List[Recipe]:
        try:
            recipes = self._store.load()
        except RecipeStoreError as exc:
            logger.error("Could not read recipes, using built-in set: %s", exc)
            return seed_recipes()
        if recipes is None:
            logger.info("No saved recipes, starting from the built-in set")
            return seed_recipes()
        return recipes

    def _save(self):
        self._store.save(self._recipes)

    def _index(self, recipe_id: str) -> int:
        for i, recipe in enumerate(self._recipes):
            if recipe.id == recipe_id:
                return i
        raise RecipeNotFoundError(recipe_id)

    # ── Queries ───────────────────────────────────────────────────────────────

    def list(self) -> List[Recipe]:
        with self._lock:
            return [r.copy() for r in self._recipes]

    def get(self, recipe_id: str) -> Optional[Recipe]:
        with self._lock:
            for recipe in self._recipes:
                if recipe.id == recipe_id:
                    return recipe.copy()
        return None

    def get_active(self) -> Optional[Recipe]:
        with self._lock:
            for recipe in self._recipes:
                if recipe.active:
                    return recipe.copy()
        return None

    def find(self, name_or_id: str) -> Recipe:
        """Look a recipe up by id, or by name ignoring case."""
        key = name_or_id.strip()
        with self._lock:
            for recipe in self._recipes:
                if recipe.id == key or recipe.name.casefold() == key.casefold():
                    return recipe.copy()
        raise RecipeNotFoundError(name_or_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._recipes)

    # ── Mutations ─────────────────────────────────────────────────────────────

    def create(self, name: str, steps: Optional[List[Transformation]] = None,
               description: Optional[str] = None, icon: Optional[str] = None,
               hotkey: Optional[str] = None) -> Recipe:
        recipe = Recipe(
            name, list(steps or []),
            description=description, icon=icon, hotkey=hotkey,
        )
        with self._lock:
            self._recipes.append(recipe)
            self._save()
        logger.debug("Created recipe %s (%s)", recipe.name, recipe.id)
        return recipe.copy()

    def update(self, recipe: Recipe) -> Recipe:
        """Replace the stored recipe with the same id and stamp modified_at."""
        updated = recipe.copy()
        updated.modified_at = _now()
        with self._lock:
            idx = self._index(updated.id)
            self._recipes[idx] = updated
            if updated.active:
                for other in self._recipes:
                    if other.id != updated.id:
                        other.active = False
            self._save()
        return updated.copy()

    def delete(self, recipe_id: str):
        with self._lock:
            self._recipes = [r for r in self._recipes if r.id != recipe_id]
            self._save()

    def set_active(self, recipe_id: str) -> Recipe:
        with self._lock:
            idx = self._index(recipe_id)
            for recipe in self._recipes:
                recipe.active = recipe.id == recipe_id
            self._save()
            return self._recipes[idx].copy()

    def deactivate_all(self):
        with self._lock:
            for recipe in self._recipes:
                recipe.active = False
            self._save()
