"""Tests for Recipe, ActiveRecipe and RecipeRegistry."""

import os
import sys
import unittest
from datetime import timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from clip_errors import RecipeNotFoundError, RecipeStoreError
from clip_transforms import Transformation
from recipe_book import ActiveRecipe, Recipe, RecipeRegistry, seed_recipes

T = Transformation.of


class FakeStore:
    """In-memory stand-in for RecipeStore."""

    def __init__(self, recipes=None, load_error=None, fail_saves=False):
        self.recipes    = recipes
        self.load_error = load_error
        self.fail_saves = fail_saves
        self.saves      = []

    def load(self):
        if self.load_error:
            raise self.load_error
        return self.recipes

    def save(self, recipes):
        if self.fail_saves:
            raise RecipeStoreError("disk full")
        self.saves.append([r.copy() for r in recipes])


def _active_ids(registry):
    return [r.id for r in registry.list() if r.active]


class TestRecipe(unittest.TestCase):
    def test_steps_apply_in_order(self):
        recipe = Recipe("Shout", [T("uppercase"), T("trim_lines")])
        self.assertEqual(recipe.apply("  hello world  "), "HELLO WORLD")

    def test_empty_recipe_is_identity(self):
        recipe = Recipe("Nothing")
        self.assertTrue(recipe.is_empty())
        for text in ("", "abc", "  a\r\nb  ", "\U0001F600"):
            self.assertEqual(recipe.apply(text), text)

    def test_add_step_stamps_modified(self):
        recipe = Recipe("R")
        recipe.modified_at -= timedelta(days=1)
        before = recipe.modified_at
        recipe.add_step(T("lowercase"))
        self.assertGreater(recipe.modified_at, before)
        self.assertEqual(recipe.chain_label(), "lowercase")

    def test_copy_is_independent(self):
        recipe = Recipe("R", [T("lowercase")])
        clone = recipe.copy()
        clone.steps.append(T("uppercase"))
        self.assertEqual(len(recipe.steps), 1)


class TestActiveRecipe(unittest.TestCase):
    def test_get_returns_private_copy(self):
        slot = ActiveRecipe(Recipe("R", [T("lowercase")]))
        got = slot.get()
        got.steps.clear()
        self.assertEqual(len(slot.get().steps), 1)
        self.assertEqual(slot.name, "R")

    def test_empty_slot(self):
        slot = ActiveRecipe()
        self.assertIsNone(slot.get())
        self.assertIsNone(slot.name)
        slot.set(Recipe("X"))
        self.assertEqual(slot.name, "X")
        slot.set(None)
        self.assertIsNone(slot.get())


class TestRegistryLoading(unittest.TestCase):
    def test_seeds_when_nothing_saved(self):
        registry = RecipeRegistry(FakeStore(None))
        self.assertEqual(len(registry), len(seed_recipes()))
        self.assertEqual(_active_ids(registry), [])
        self.assertEqual(registry.find("clean code").name, "Clean Code")

    def test_seeds_when_store_unreadable(self):
        with self.assertLogs("recipe_book", level="ERROR"):
            registry = RecipeRegistry(FakeStore(load_error=RecipeStoreError("corrupt")))
        self.assertEqual(len(registry), len(seed_recipes()))

    def test_saved_recipes_used(self):
        registry = RecipeRegistry(FakeStore([Recipe("Only")]))
        self.assertEqual([r.name for r in registry.list()], ["Only"])


class TestRegistryMutations(unittest.TestCase):
    def setUp(self):
        self.a = Recipe("A", [T("lowercase")])
        self.b = Recipe("B", [T("uppercase")], active=True)
        self.store = FakeStore([self.a, self.b])
        self.registry = RecipeRegistry(self.store)

    def test_set_active_leaves_exactly_one(self):
        self.registry.set_active(self.a.id)
        self.assertEqual(_active_ids(self.registry), [self.a.id])
        self.assertEqual(self.registry.get_active().name, "A")
        self.assertEqual(len(self.store.saves), 1)

    def test_set_active_unknown_changes_nothing(self):
        with self.assertRaises(RecipeNotFoundError):
            self.registry.set_active("missing")
        self.assertEqual(_active_ids(self.registry), [self.b.id])
        self.assertEqual(self.store.saves, [])

    def test_deactivate_all(self):
        self.registry.deactivate_all()
        self.assertIsNone(self.registry.get_active())

    def test_create_persists(self):
        created = self.registry.create("C", [T("trim_lines")], description="trim")
        self.assertEqual(len(self.registry), 3)
        self.assertFalse(created.active)
        self.assertEqual([r.name for r in self.store.saves[-1]], ["A", "B", "C"])

    def test_update_active_recipe_deactivates_others(self):
        recipe = self.registry.get(self.a.id)
        recipe.active = True
        recipe.name = "A2"
        self.registry.update(recipe)
        self.assertEqual(_active_ids(self.registry), [self.a.id])
        self.assertEqual(self.registry.get(self.a.id).name, "A2")

    def test_update_unknown_raises(self):
        with self.assertRaises(RecipeNotFoundError):
            self.registry.update(Recipe("Ghost"))

    def test_delete(self):
        self.registry.delete(self.b.id)
        self.assertIsNone(self.registry.get(self.b.id))
        self.assertIsNone(self.registry.get_active())

    def test_delete_unknown_is_noop(self):
        self.registry.delete("missing")
        self.assertEqual(len(self.registry), 2)
        self.assertEqual(len(self.store.saves), 1)

    def test_failed_save_keeps_change_in_memory(self):
        self.store.fail_saves = True
        with self.assertRaises(RecipeStoreError):
            self.registry.create("C")
        self.assertEqual(len(self.registry), 3)

    def test_find(self):
        self.assertEqual(self.registry.find(self.a.id).name, "A")
        self.assertEqual(self.registry.find(" b ").id, self.b.id)
        with self.assertRaises(RecipeNotFoundError) as ctx:
            self.registry.find("zzz")
        self.assertEqual(str(ctx.exception), "Recipe not found: zzz")

    def test_list_returns_copies(self):
        self.registry.list()[0].name = "changed"
        self.assertEqual(self.registry.list()[0].name, "A")


if __name__ == "__main__":
    unittest.main()
