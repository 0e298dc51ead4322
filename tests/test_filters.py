import itertools

import pytest

from recipe_catalog import schemas
from recipe_catalog.exceptions import InvalidArgumentError
from recipe_catalog.filters import build_predicates, filter_by_language, filter_recipes, parse_range


def make_recipe(id, **fields):
    data = {
        "id": id,
        "owner_id": 1,
        "name": f"Recipe {id}",
        "difficulty": 1,
        "prepare_time": 30,
        "servings": 2,
        "category": "dinner",
        "is_public": True,
        "language": "en",
        "ingredients": [],
    }
    data.update(fields)
    return schemas.Recipe(**data)


def ing(name, language="en"):
    return schemas.Ingredient(name=name, language=language)


@pytest.fixture()
def recipes():
    return [
        make_recipe(1, category="dinner", difficulty=2, servings=4, prepare_time=45,
                    ingredients=[ing("Chicken"), ing("rice"), ing("kurczak", "pl")]),
        make_recipe(2, category="breakfast", difficulty=1, servings=1, prepare_time=10,
                    ingredients=[ing("eggs"), ing("milk")]),
        make_recipe(3, category="dinner", difficulty=3, servings=6, prepare_time=90, language="pl",
                    ingredients=[ing("ryż", "pl"), ing("kurczak", "pl")]),
        make_recipe(4, category="dessert", difficulty=2, servings=8, prepare_time=60, language="EN",
                    ingredients=[ing("milk"), ing("sugar")]),
    ]


def ids(recipes):
    return [r.id for r in recipes]


# --- parse_range ---

def test_parse_range():
    assert parse_range("2-4") == (2, 4)
    assert parse_range(" 10 - 30 ") == (10, 30)


@pytest.mark.parametrize("value", ["", "4", "a-b", "2-", "-3", "1-2-3", "2:4"])
def test_parse_range_rejects_malformed(value):
    with pytest.raises(InvalidArgumentError):
        parse_range(value)


# --- single criteria ---

def test_no_criteria_keeps_everything(recipes):
    assert ids(filter_recipes(schemas.RecipeFilterCriteria(), recipes)) == [1, 2, 3, 4]


def test_filter_by_categories(recipes):
    criteria = schemas.RecipeFilterCriteria(categories=["dinner", "dessert"])
    assert ids(filter_recipes(criteria, recipes)) == [1, 3, 4]


def test_category_match_is_exact(recipes):
    criteria = schemas.RecipeFilterCriteria(categories=["Dinner"])
    assert filter_recipes(criteria, recipes) == []


def test_filter_by_difficulty(recipes):
    criteria = schemas.RecipeFilterCriteria(difficulty=2)
    assert ids(filter_recipes(criteria, recipes)) == [1, 4]


def test_filter_by_servings_is_inclusive(recipes):
    criteria = schemas.RecipeFilterCriteria(servings="4-6")
    assert ids(filter_recipes(criteria, recipes)) == [1, 3]


def test_filter_by_prepare_time_is_inclusive(recipes):
    criteria = schemas.RecipeFilterCriteria(prepare_time="10-45")
    assert ids(filter_recipes(criteria, recipes)) == [1, 2]


def test_malformed_range_is_an_error_even_without_recipes():
    with pytest.raises(InvalidArgumentError):
        filter_recipes(schemas.RecipeFilterCriteria(servings="many"), [])


def test_filter_by_language_ignores_case(recipes):
    criteria = schemas.RecipeFilterCriteria(language="en")
    assert ids(filter_recipes(criteria, recipes)) == [1, 2, 4]


def test_filter_requires_every_ingredient(recipes):
    criteria = schemas.RecipeFilterCriteria(ingredients=["MILK"])
    assert ids(filter_recipes(criteria, recipes)) == [2, 4]

    criteria = schemas.RecipeFilterCriteria(ingredients=["milk", "sugar"])
    assert ids(filter_recipes(criteria, recipes)) == [4]


def test_empty_ingredient_list_does_not_narrow(recipes):
    criteria = schemas.RecipeFilterCriteria(ingredients=[])
    assert ids(filter_recipes(criteria, recipes)) == [1, 2, 3, 4]


# --- language rewrite ---

def test_language_rewrite_keeps_matching_ingredients(recipes):
    criteria = schemas.RecipeFilterCriteria(language="en")
    result = filter_recipes(criteria, recipes)

    chicken = result[0]
    assert [i.name for i in chicken.ingredients] == ["Chicken", "rice"]


def test_language_rewrite_does_not_touch_input(recipes):
    filter_recipes(schemas.RecipeFilterCriteria(language="en"), recipes)
    assert [i.name for i in recipes[0].ingredients] == ["Chicken", "rice", "kurczak"]


def test_language_rewrite_never_changes_survivors(recipes):
    criteria = schemas.RecipeFilterCriteria(language="pl", ingredients=["kurczak"])
    result = filter_recipes(criteria, recipes)

    # Recipe 1 is English and excluded by language, recipe 3 survives with its Polish ingredients
    assert ids(result) == [3]
    assert [i.name for i in result[0].ingredients] == ["ryż", "kurczak"]


def test_without_language_ingredients_are_unchanged(recipes):
    result = filter_recipes(schemas.RecipeFilterCriteria(categories=["dinner"]), recipes)
    assert len(result[0].ingredients) == 3


def test_filter_by_language_ignores_case_and_untagged():
    ingredients = [ing("flour"), ing("mąka", "PL"), ing("salt", None)]
    assert [i.name for i in filter_by_language(ingredients, "pl")] == ["mąka"]


# --- order independence ---

def test_criteria_order_does_not_change_survivors(recipes):
    criteria = schemas.RecipeFilterCriteria(
        categories=["dinner", "dessert"],
        difficulty=2,
        servings="1-8",
        prepare_time="30-60",
        language="EN",
    )
    predicates = [p for _, p in build_predicates(criteria)]
    expected = ids(filter_recipes(criteria, recipes))

    for ordering in itertools.permutations(predicates):
        survivors = list(recipes)
        for predicate in ordering:
            survivors = [r for r in survivors if predicate(r)]
        assert ids(survivors) == expected

    assert expected == [1, 4]
