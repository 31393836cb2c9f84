"""Saved command templates.

Recipes are independent of execution history: saving, using or deleting
one never touches the operation store.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import datetime
from functools import partial
from typing import Any

from doc_agent.core.errors import StorageCorruptedError, StorageError
from doc_agent.core.logging import get_logger
from doc_agent.core.types import Clock, IdFactory, new_id, parse_timestamp, utc_now

from .backend import KeyValueStore, MemoryStore

logger = get_logger("storage.recipes")

NAME_LENGTH = 40


@dataclass(frozen=True)
class AgentRecipe:
    """A reusable command template.

    Attributes:
        id: Unique recipe identifier.
        name: Display name.
        template: Command text to plan when the recipe is used.
        description: Optional longer description.
        tags: Free-form labels, e.g. the step families the recipe touches.
        usage_count: How many times the recipe was planned.
        created_at: Creation time.
        updated_at: Last modification time.
    """

    id: str
    name: str
    template: str
    description: str = ""
    tags: tuple[str, ...] = ()
    usage_count: int = 0
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if not self.template.strip():
            raise ValueError("Recipe template cannot be empty")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "template": self.template,
            "description": self.description,
            "tags": list(self.tags),
            "usageCount": self.usage_count,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AgentRecipe:
        created_at = parse_timestamp(data.get("createdAt")) or utc_now()
        return cls(
            id=data["id"],
            name=data.get("name") or default_name(data["template"]),
            template=data["template"],
            description=data.get("description", ""),
            tags=tuple(data.get("tags", [])),
            usage_count=data.get("usageCount", 0),
            created_at=created_at,
            updated_at=parse_timestamp(data.get("updatedAt")) or created_at,
        )


def default_name(template: str) -> str:
    """Name derived from the first line of a template."""
    first_line = template.strip().splitlines()[0] if template.strip() else ""
    if len(first_line) <= NAME_LENGTH:
        return first_line
    return first_line[: NAME_LENGTH - 3].rstrip() + "..."


class RecipeStore:
    """Async CRUD store for AgentRecipe, persisted as a JSON array.

    Backend calls run on a single-worker thread pool and every
    read-modify-write holds the store lock, so concurrent saves and
    usage counts never overwrite each other.
    """

    KEY = "recipes"

    def __init__(
        self,
        backend: KeyValueStore | None = None,
        id_factory: IdFactory = new_id,
        clock: Clock = utc_now,
    ) -> None:
        self._backend = backend if backend is not None else MemoryStore()
        self._id_factory = id_factory
        self._clock = clock
        self._executor = ThreadPoolExecutor(max_workers=1)
        self._lock = asyncio.Lock()

    async def _run(self, func: Any, *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, partial(func, *args))

    def _read(self) -> list[AgentRecipe]:
        try:
            raw = self._backend.load(self.KEY)
        except StorageCorruptedError as e:
            logger.warning(f"Recipe store is corrupted, starting empty: {e}")
            return []
        except StorageError as e:
            logger.warning(f"Recipe store unreadable, starting empty: {e}")
            return []
        if not isinstance(raw, list):
            return []

        recipes = []
        for entry in raw:
            try:
                recipes.append(AgentRecipe.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed recipe: {e}")
        return recipes

    def _write(self, recipes: list[AgentRecipe]) -> None:
        self._backend.save(self.KEY, [r.to_dict() for r in recipes])

    async def save(
        self,
        template: str,
        name: str | None = None,
        description: str = "",
        tags: tuple[str, ...] | list[str] = (),
    ) -> AgentRecipe:
        """Create a recipe.

        Args:
            template: Command text.
            name: Display name. Derived from the template if omitted.
            description: Optional description.
            tags: Optional labels.

        Returns:
            The stored recipe.

        Raises:
            ValueError: If the template is empty.
            StorageError: If the recipe could not be written.
        """
        now = self._clock()
        recipe = AgentRecipe(
            id=self._id_factory(),
            name=name or default_name(template),
            template=template,
            description=description,
            tags=tuple(dict.fromkeys(tags)),
            created_at=now,
            updated_at=now,
        )
        async with self._lock:
            recipes = await self._run(self._read)
            recipes.append(recipe)
            await self._run(self._write, recipes)
        logger.info(f"Saved recipe {recipe.id} ({recipe.name})")
        return recipe

    async def list(self) -> list[AgentRecipe]:
        return await self._run(self._read)

    async def get(self, recipe_id: str) -> AgentRecipe | None:
        for recipe in await self.list():
            if recipe.id == recipe_id:
                return recipe
        return None

    async def update(self, recipe_id: str, **changes: Any) -> AgentRecipe | None:
        """Change name, template, description or tags of a recipe.

        Returns:
            The updated recipe, or None if it does not exist.
        """
        allowed = {"name", "template", "description", "tags"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"Cannot update recipe field(s): {', '.join(sorted(unknown))}")
        if "tags" in changes:
            changes["tags"] = tuple(dict.fromkeys(changes["tags"]))
        return await self._modify(recipe_id, lambda r: replace(r, **changes, updated_at=self._clock()))

    async def record_usage(self, recipe_id: str) -> AgentRecipe | None:
        """Increment the usage counter."""
        return await self._modify(
            recipe_id,
            lambda r: replace(r, usage_count=r.usage_count + 1, updated_at=self._clock()),
        )

    async def delete(self, recipe_id: str) -> bool:
        async with self._lock:
            recipes = await self._run(self._read)
            remaining = [r for r in recipes if r.id != recipe_id]
            if len(remaining) == len(recipes):
                return False
            await self._run(self._write, remaining)
        logger.info(f"Deleted recipe {recipe_id}")
        return True

    async def _modify(self, recipe_id: str, change: Any) -> AgentRecipe | None:
        async with self._lock:
            recipes = await self._run(self._read)
            for index, recipe in enumerate(recipes):
                if recipe.id == recipe_id:
                    recipes[index] = change(recipe)
                    await self._run(self._write, recipes)
                    return recipes[index]
        return None

    def close(self) -> None:
        """Shut down the I/O thread pool."""
        self._executor.shutdown(wait=True)
