# filters.py
# Narrows a list of recipes by the browse criteria.

import logging
import re
from typing import Callable, List, Optional, Sequence, Tuple

from recipe_catalog import schemas
from recipe_catalog.exceptions import InvalidRangeError

logger = logging.getLogger(__name__)

RANGE_PATTERN = re.compile(r"^\s*(\d+)\s*-\s*(\d+)\s*$")

RecipePredicate = Callable[[schemas.Recipe], bool]


def parse_range(value: str) -> Tuple[int, int]:
    """
    Parse a "from-to" string such as "2-4" into an inclusive (from, to) pair.
    """
    match = RANGE_PATTERN.match(value or "")
    if not match:
        raise InvalidRangeError(value)
    return int(match.group(1)), int(match.group(2))


def _same_language(left: Optional[str], right: Optional[str]) -> bool:
    return left is not None and right is not None and left.lower() == right.lower()


def _has_all_ingredients(recipe: schemas.Recipe, names: Sequence[str]) -> bool:
    if recipe.ingredients is None:
        return False
    recipe_names = {i.name.lower() for i in recipe.ingredients}
    return all(name.lower() in recipe_names for name in names)


def build_predicates(criteria: schemas.RecipeFilterCriteria) -> List[Tuple[str, RecipePredicate]]:
    """
    Turn the present criteria into named predicates, in application order.

    Range strings are parsed here so a malformed one fails even when the
    recipe list is empty.
    """
    predicates = []

    if criteria.categories:
        categories = set(criteria.categories)
        predicates.append(("category", lambda r: r.category in categories))

    if criteria.difficulty is not None:
        difficulty = criteria.difficulty
        predicates.append(("difficulty", lambda r: r.difficulty == difficulty))

    if criteria.servings is not None:
        servings_from, servings_to = parse_range(criteria.servings)
        predicates.append(("servings", lambda r: servings_from <= r.servings <= servings_to))

    if criteria.prepare_time is not None:
        time_from, time_to = parse_range(criteria.prepare_time)
        predicates.append(("prepare_time", lambda r: time_from <= r.prepare_time <= time_to))

    if criteria.language:
        language = criteria.language
        predicates.append(("language", lambda r: _same_language(r.language, language)))

    if criteria.ingredients:
        names = list(criteria.ingredients)
        predicates.append(("ingredients", lambda r: _has_all_ingredients(r, names)))

    return predicates


def filter_by_language(ingredients: List[schemas.Ingredient], language: str) -> List[schemas.Ingredient]:
    return [i for i in ingredients if _same_language(i.language, language)]


def filter_recipes(criteria: schemas.RecipeFilterCriteria, recipes: Sequence[schemas.Recipe]) -> List[schemas.Recipe]:
    """
    Apply every present criterion, then restrict each surviving recipe's
    ingredients to the requested language.

    The language rewrite returns copies; the input recipes are left as they were.
    """
    filtered = list(recipes)
    for name, predicate in build_predicates(criteria):
        filtered = [r for r in filtered if predicate(r)]
        logger.debug(f"Filter '{name}' kept {len(filtered)} recipes")

    if not criteria.language:
        return filtered

    return [
        r.model_copy(update={"ingredients": filter_by_language(r.ingredients, criteria.language)})
        if r.ingredients is not None else r
        for r in filtered
    ]
