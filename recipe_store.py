"""
recipe_store.py - Reads and writes recipes.ini.

recipes.ini format (one section per recipe, in registry order):
    [recipe:5b0c9e0e-...]
    name = Clean Code
    description = Clean up code snippets
    icon = 💻
    hotkey =
    active = false
    created_at = 2026-01-01T09:00:00+00:00
    modified_at = 2026-01-01T09:00:00+00:00
    steps =
        fix_smart_quotes
        trim_lines
        tabs_to_spaces {"spaces": 4}

Each step line is a transformation kind, optionally followed by a JSON
object of parameters. Interpolation is off, so '%' in patterns is literal.
"""

import configparser
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from clip_errors import RecipeStoreError
from clip_settings import config_dir
from clip_transforms import Transformation
from recipe_book import Recipe

logger = logging.getLogger(__name__)

RECIPES_NAME   = "recipes.ini"
SECTION_PREFIX = "recipe:"


def _new_parser() -> configparser.ConfigParser:
    return configparser.ConfigParser(interpolation=None)


def recipe_from_section(recipe_id: str, section: configparser.SectionProxy) -> Recipe:
    name = section.get("name", "").strip()
    if not name:
        raise ValueError("missing name")
    raw_steps = section.get("steps", "")
    steps = [
        Transformation.from_line(line)
        for line in raw_steps.splitlines()
        if line.strip()
    ]
    recipe = Recipe(
        name,
        steps,
        description=section.get("description", "").strip() or None,
        icon=section.get("icon", "").strip() or None,
        hotkey=section.get("hotkey", "").strip() or None,
        active=section.getboolean("active", fallback=False),
        id=recipe_id,
    )
    if section.get("created_at"):
        recipe.created_at = datetime.fromisoformat(section["created_at"])
    if section.get("modified_at"):
        recipe.modified_at = datetime.fromisoformat(section["modified_at"])
    return recipe


def recipe_to_section(recipe: Recipe) -> dict:
    return {
        "name":        recipe.name,
        "description": recipe.description or "",
        "icon":        recipe.icon or "",
        "hotkey":      recipe.hotkey or "",
        "active":      "true" if recipe.active else "false",
        "created_at":  recipe.created_at.isoformat(),
        "modified_at": recipe.modified_at.isoformat(),
        "steps":       "".join("\n" + step.to_line() for step in recipe.steps),
    }


class RecipeStore:
    """recipes.ini in the user config directory (or an explicit path)."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else config_dir() / RECIPES_NAME

    def load(self) -> Optional[List[Recipe]]:
        """
        Return the saved recipes, or None when nothing has been saved yet.
        Raises RecipeStoreError if the file exists but cannot be parsed.
        """
        if not self.path.exists():
            return None

        cfg = _new_parser()
        try:
            cfg.read(self.path, encoding="utf-8")
        except (OSError, UnicodeDecodeError, configparser.Error) as exc:
            raise RecipeStoreError(f"Failed to read {self.path}: {exc}") from exc

        recipes = []
        seen = set()
        for section in cfg.sections():
            if not section.startswith(SECTION_PREFIX):
                continue
            recipe_id = section[len(SECTION_PREFIX):].strip()
            if recipe_id in seen:
                continue
            try:
                recipes.append(recipe_from_section(recipe_id, cfg[section]))
            except (KeyError, ValueError) as exc:
                raise RecipeStoreError(f"Bad recipe [{section}] in {self.path}: {exc}") from exc
            seen.add(recipe_id)

        active = [r for r in recipes if r.active]
        for extra in active[1:]:
            logger.warning("More than one active recipe saved, deactivating %s", extra.name)
            extra.active = False

        logger.debug("Loaded %d recipe(s) from %s", len(recipes), self.path)
        return recipes

    def save(self, recipes: List[Recipe]):
        cfg = _new_parser()
        for recipe in recipes:
            cfg[SECTION_PREFIX + recipe.id] = recipe_to_section(recipe)

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(
                prefix=".recipes-", suffix=".ini", dir=str(self.path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    cfg.write(fh)
                os.replace(tmp, self.path)
            except BaseException:
                try:
                    os.unlink(tmp)
                except OSError:
                    pass
                raise
        except OSError as exc:
            raise RecipeStoreError(f"Failed to write {self.path}: {exc}") from exc
