# catalog.py
# Recipe catalog operations: ownership checks, mutations, favourites,
# ratings and the browse pipeline.
#
# Every operation receives an already-resolved user id and role set. Each
# mutation commits exactly once; on failure the session is rolled back so no
# half-applied change is ever visible.

import logging
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from recipe_catalog import crud
from recipe_catalog import models
from recipe_catalog import schemas
from recipe_catalog.exceptions import (
    ConflictError, InvalidArgumentError, RecipeNotFoundError, UnauthorizedError,
    UserNotFoundError,
)
from recipe_catalog.filters import filter_recipes
from recipe_catalog.images import ImageStorage, discard_images, get_image_storage, upload_all
from recipe_catalog.pagination import paginate, total_pages

# Get a logger instance
logger = logging.getLogger(__name__)

ADMIN_ROLE = "ADMIN"
MIN_RATING = 1
MAX_RATING = 5


# --- Authorization ---

def can_mutate(recipe: models.Recipe, user_id: int, roles: Iterable[str]) -> bool:
    """
    Only the owner of a recipe or an administrator may change or remove it.
    """
    return recipe.owner_id == user_id or ADMIN_ROLE in set(roles or ())


# --- Lookups ---

def get_recipe(db: Session, recipe_id: int) -> models.Recipe:
    db_recipe = crud.get_recipe(db, recipe_id)
    if db_recipe is None:
        logger.warning(f"Recipe with ID {recipe_id} not found.")
        raise RecipeNotFoundError(recipe_id)
    return db_recipe


def get_user(db: Session, user_id: int) -> models.User:
    db_user = crud.get_user(db, user_id)
    if db_user is None:
        logger.warning(f"User with ID {user_id} not found.")
        raise UserNotFoundError(user_id)
    return db_user


def _load_for_mutation(db: Session, recipe_id: int, user_id: int, roles: Iterable[str], action: str) -> models.Recipe:
    db_recipe = get_recipe(db, recipe_id)
    get_user(db, user_id)
    if not can_mutate(db_recipe, user_id, roles):
        logger.error(f"User {user_id} is not authorized to {action} recipe with ID: {recipe_id}")
        raise UnauthorizedError(f"You can {action} only your own recipes!")
    return db_recipe


# --- Image helpers ---

def _upload_photos(storage: ImageStorage, photos: List[bytes]) -> List[models.Image]:
    return [
        models.Image(url=s.url, storage_id=s.storage_id, image_type=models.ImageType.RECIPE)
        for s in upload_all(storage, photos)
    ]


def _commit(db: Session, storage: Optional[ImageStorage] = None, uploaded: Optional[List[models.Image]] = None) -> None:
    try:
        db.commit()
    except Exception:
        db.rollback()
        if storage is not None and uploaded:
            discard_images(storage, [i.storage_id for i in uploaded])
        raise


# --- Collection builders ---

def _build_ingredients(items: List[schemas.IngredientCreate], language: Optional[str], inherit: bool) -> List[models.Ingredient]:
    return [
        models.Ingredient(
            name=item.name,
            quantity=item.quantity,
            unit=item.unit,
            is_optional=item.is_optional,
            language=language if inherit or item.language is None else item.language,
        )
        for item in items
    ]


def _build_steps(items: List[schemas.StepCreate]) -> List[models.Step]:
    return [models.Step(position=position, content=item.content) for position, item in enumerate(items, start=1)]


# --- Mutations ---

def create_recipe(
        db: Session,
        user_id: int,
        draft: schemas.RecipeCreate,
        photos: Optional[List[bytes]] = None,
        storage: Optional[ImageStorage] = None,
) -> models.Recipe:
    """
    Create a recipe owned by the given user.

    Ingredients take the recipe language. Photos are uploaded before anything
    is written; if one fails, nothing is persisted.
    """
    logger.debug(f"User {user_id} is creating recipe {draft.name!r}")
    storage = storage or get_image_storage()
    owner = get_user(db, user_id)

    images = _upload_photos(storage, photos) if photos else []

    db_recipe = models.Recipe(
        name=draft.name,
        difficulty=draft.difficulty,
        prepare_time=draft.prepare_time,
        servings=draft.servings,
        category=draft.category,
        is_public=draft.is_public,
        language=draft.language,
        owner=owner,
        ingredients=_build_ingredients(draft.ingredients, draft.language, inherit=True),
        steps=_build_steps(draft.steps),
        images=images,
    )
    db.add(db_recipe)
    _commit(db, storage, images)
    db.refresh(db_recipe)
    logger.info(f"Recipe {db_recipe.id} created by user {user_id}")
    return db_recipe


def update_recipe(
        db: Session,
        recipe_id: int,
        user_id: int,
        roles: Iterable[str],
        patch: schemas.RecipeUpdate,
        photos: Optional[List[bytes]] = None,
        keep_existing_photos: bool = False,
        storage: Optional[ImageStorage] = None,
) -> models.Recipe:
    """
    Overwrite a recipe. Ingredients and steps are replaced wholesale.

    New photos replace the old ones. Without new photos the old ones are kept
    only when keep_existing_photos is set. Replaced photos are removed from
    storage after the commit, on a best-effort basis.
    """
    logger.debug(f"User {user_id} is updating recipe with ID: {recipe_id}")
    storage = storage or get_image_storage()
    db_recipe = _load_for_mutation(db, recipe_id, user_id, roles, "edit")

    new_images = _upload_photos(storage, photos) if photos else None

    db_recipe.name = patch.name
    db_recipe.difficulty = patch.difficulty
    db_recipe.prepare_time = patch.prepare_time
    db_recipe.servings = patch.servings
    db_recipe.category = patch.category
    db_recipe.is_public = patch.is_public
    db_recipe.language = patch.language
    db_recipe.ingredients = _build_ingredients(patch.ingredients, patch.language, inherit=False)
    db_recipe.steps = _build_steps(patch.steps)

    stale_ids: List[str] = []
    if new_images is not None:
        stale_ids = [i.storage_id for i in db_recipe.images]
        db_recipe.images = new_images
    elif not keep_existing_photos:
        stale_ids = [i.storage_id for i in db_recipe.images]
        db_recipe.images = []

    _commit(db, storage, new_images)
    discard_images(storage, stale_ids)
    db.refresh(db_recipe)
    return db_recipe


def delete_recipe(
        db: Session,
        recipe_id: int,
        user_id: int,
        roles: Iterable[str],
        storage: Optional[ImageStorage] = None,
) -> None:
    """
    Delete a recipe together with its ingredients, steps, ratings and images,
    and take it out of every user's favourites.
    """
    logger.debug(f"User {user_id} is deleting recipe with ID: {recipe_id}")
    storage = storage or get_image_storage()
    db_recipe = _load_for_mutation(db, recipe_id, user_id, roles, "delete")

    stale_ids = [i.storage_id for i in db_recipe.images]
    detached = crud.detach_favourites(db, recipe_id)
    db.expire(db_recipe, ["favourited_by"])
    db.delete(db_recipe)
    _commit(db)

    if detached:
        logger.debug(f"Recipe {recipe_id} removed from favourites of users {detached}")
    discard_images(storage, stale_ids)
    logger.info(f"Recipe {recipe_id} deleted by user {user_id}")


# --- Ratings ---

def rate_recipe(db: Session, recipe_id: int, user_id: int, value: int) -> models.Rating:
    """
    Insert or overwrite the user's rating of a recipe.
    """
    if value < MIN_RATING or value > MAX_RATING:
        raise InvalidArgumentError(f"Rating has to be from {MIN_RATING} to {MAX_RATING}")
    get_user(db, user_id)
    get_recipe(db, recipe_id)

    db_rating = crud.get_rating(db, recipe_id, user_id)
    if db_rating is not None:
        db_rating.value = value
        _commit(db)
        return db_rating

    db_rating = models.Rating(recipe_id=recipe_id, user_id=user_id, value=value)
    db.add(db_rating)
    try:
        db.commit()
    except IntegrityError:
        # Another request inserted the same pair first; overwrite its value instead.
        db.rollback()
        logger.warning(f"Concurrent rating of recipe {recipe_id} by user {user_id}, retrying as update")
        db_rating = crud.get_rating(db, recipe_id, user_id)
        if db_rating is None:
            raise ConflictError(f"Could not store rating of recipe {recipe_id}")
        db_rating.value = value
        _commit(db)
    return db_rating


def get_user_rating(db: Session, recipe_id: int, user_id: int) -> int:
    """
    The user's rating of the recipe, or 0 when they have not rated it.
    """
    get_user(db, user_id)
    db_rating = crud.get_rating(db, recipe_id, user_id)
    return db_rating.value if db_rating is not None else 0


# --- Favourites ---

def add_favourite(db: Session, recipe_id: int, user_id: int) -> None:
    get_user(db, user_id)
    get_recipe(db, recipe_id)
    if crud.is_favourite(db, user_id, recipe_id):
        logger.warning(f"Recipe {recipe_id} already in favourites of user {user_id}")
        raise ConflictError("Recipe is already added to favourites!")
    try:
        crud.add_favourite(db, user_id, recipe_id)
        db.commit()
    except IntegrityError:
        # Another request stored the same pair after the check above.
        db.rollback()
        logger.warning(f"Concurrent favourite of recipe {recipe_id} by user {user_id}")
        raise ConflictError("Recipe is already added to favourites!")


def remove_favourite(db: Session, recipe_id: int, user_id: int) -> None:
    get_user(db, user_id)
    get_recipe(db, recipe_id)
    if crud.remove_favourite(db, user_id, recipe_id) == 0:
        db.rollback()
        logger.warning(f"Recipe {recipe_id} not in favourites of user {user_id}")
        raise ConflictError("Recipe is not located in your favourites!")
    _commit(db)


def is_favourite(db: Session, recipe_id: int, user_id: int) -> bool:
    get_user(db, user_id)
    get_recipe(db, recipe_id)
    return crud.is_favourite(db, user_id, recipe_id)


def is_owner(db: Session, recipe_id: int, user_id: int) -> bool:
    get_user(db, user_id)
    return get_recipe(db, recipe_id).owner_id == user_id


# --- Queries ---

def browse_recipes(
        db: Session,
        page: int,
        size: int,
        criteria: Optional[schemas.RecipeFilterCriteria] = None,
        public_only: bool = True,
) -> schemas.RecipePage:
    """
    Filter the catalog and return one page of it.

    total_pages counts the filtered recipes. An empty result is returned as
    an empty first page; any other page outside the result is an error.
    """
    criteria = criteria or schemas.RecipeFilterCriteria()
    logger.debug(f"Browsing recipes page={page}, size={size}, public_only={public_only}, criteria={criteria}")

    recipes = [schemas.Recipe.model_validate(r) for r in crud.get_recipes(db, public_only=public_only)]
    filtered = filter_recipes(criteria, recipes)

    pages = total_pages(size, filtered)
    if not filtered and page == 1:
        return schemas.RecipePage(content=[], total_pages=0)
    return schemas.RecipePage(content=paginate(page, size, filtered), total_pages=pages)


def search_recipes(db: Session, query: str) -> List[models.Recipe]:
    return crud.search_recipes(db, query)


def get_user_recipes(db: Session, user_id: int) -> List[models.Recipe]:
    get_user(db, user_id)
    return crud.get_user_recipes(db, user_id)


def get_user_favourites(db: Session, user_id: int) -> List[models.Recipe]:
    get_user(db, user_id)
    return crud.get_user_favourites(db, user_id)
