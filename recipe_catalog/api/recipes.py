# api/recipes.py
# Handles all API endpoints related to recipes.

import logging
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from pydantic import ValidationError
from sqlalchemy.orm import Session
from typing import List, Optional

# Import local modules
from recipe_catalog import catalog
from recipe_catalog import schemas
from recipe_catalog.db.session import get_db
from recipe_catalog.api.auth import get_current_claims
from recipe_catalog.core.config import settings
from recipe_catalog.images import ImageStorage, get_image_storage

# Create an API router
router = APIRouter()

# Get a logger instance
logger = logging.getLogger(__name__)


def _parse_recipe_form(raw: str) -> schemas.RecipeCreate:
    """
    Recipes arrive as a JSON string inside a multipart form, next to the photos.
    """
    try:
        return schemas.RecipeCreate.model_validate_json(raw)
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=e.errors(include_url=False, include_context=False),
        )


def _read_photos(images: Optional[List[UploadFile]]) -> List[bytes]:
    # Browsers send an empty part when no file was picked
    return [image.file.read() for image in images or [] if image.filename]


@router.get("/", response_model=schemas.RecipePage)
def browse_recipes(
        page: int = 1,
        size: int = settings.DEFAULT_PAGE_SIZE,
        category: Optional[List[str]] = Query(default=None),
        difficulty: Optional[int] = None,
        servings: Optional[str] = Query(default=None, description="Inclusive range, e.g. '2-4'"),
        prepare_time: Optional[str] = Query(default=None, description="Inclusive range in minutes, e.g. '10-30'"),
        is_public: bool = True,
        language: Optional[str] = None,
        ingredients: Optional[List[str]] = Query(default=None),
        db: Session = Depends(get_db),
):
    """
    Retrieve one page of recipes matching every given filter.

    `total_pages` counts only the recipes that passed the filters.
    """
    criteria = schemas.RecipeFilterCriteria(
        categories=category,
        difficulty=difficulty,
        servings=servings,
        prepare_time=prepare_time,
        language=language,
        ingredients=ingredients,
    )
    logger.debug(f"Fetching recipes page={page}, size={size}")
    return catalog.browse_recipes(db, page=page, size=size, criteria=criteria, public_only=is_public)


@router.get("/search", response_model=List[schemas.Recipe])
def search_recipes(query: str, db: Session = Depends(get_db)):
    """
    Recipes whose name contains the query, ignoring case.
    """
    return catalog.search_recipes(db, query)


@router.get("/favourites/is-favourite", response_model=bool)
def is_recipe_favourite(
        recipe_id: int,
        db: Session = Depends(get_db),
        claims: schemas.TokenClaims = Depends(get_current_claims),
):
    return catalog.is_favourite(db, recipe_id=recipe_id, user_id=claims.user_id)


@router.post("/favourites/add")
def add_recipe_to_favourites(
        favourite: schemas.FavouriteRequest,
        db: Session = Depends(get_db),
        claims: schemas.TokenClaims = Depends(get_current_claims),
):
    catalog.add_favourite(db, recipe_id=favourite.recipe_id, user_id=claims.user_id)
    return {"message": "Recipe added to favourites"}


@router.post("/favourites/delete")
def delete_recipe_from_favourites(
        favourite: schemas.FavouriteRequest,
        db: Session = Depends(get_db),
        claims: schemas.TokenClaims = Depends(get_current_claims),
):
    catalog.remove_favourite(db, recipe_id=favourite.recipe_id, user_id=claims.user_id)
    return {"message": "Recipe removed from favourites"}


@router.post("/", response_model=schemas.Recipe, status_code=status.HTTP_201_CREATED)
def create_recipe(
        recipe: str = Form(...),
        images: Optional[List[UploadFile]] = File(default=None),
        db: Session = Depends(get_db),
        storage: ImageStorage = Depends(get_image_storage),
        claims: schemas.TokenClaims = Depends(get_current_claims),
):
    """
    Create a new recipe for the currently authenticated user.
    """
    logger.debug(f"User {claims.user_id} is creating a new recipe.")
    draft = _parse_recipe_form(recipe)
    return catalog.create_recipe(db, claims.user_id, draft, photos=_read_photos(images), storage=storage)


@router.get("/{recipe_id}", response_model=schemas.Recipe)
def read_recipe(recipe_id: int, db: Session = Depends(get_db)):
    """
    Retrieve a single recipe by its ID.
    """
    logger.debug(f"Fetching recipe with ID: {recipe_id}")
    return catalog.get_recipe(db, recipe_id)


@router.put("/{recipe_id}", response_model=schemas.Recipe)
def update_recipe(
        recipe_id: int,
        recipe: str = Form(...),
        images: Optional[List[UploadFile]] = File(default=None),
        keep_existing_images: bool = Form(default=False),
        db: Session = Depends(get_db),
        storage: ImageStorage = Depends(get_image_storage),
        claims: schemas.TokenClaims = Depends(get_current_claims),
):
    """
    Update a recipe. Only the owner of the recipe or an admin can perform this action.
    """
    patch = _parse_recipe_form(recipe)
    return catalog.update_recipe(
        db,
        recipe_id,
        claims.user_id,
        claims.roles,
        patch,
        photos=_read_photos(images),
        keep_existing_photos=keep_existing_images,
        storage=storage,
    )


@router.delete("/{recipe_id}")
def delete_recipe(
        recipe_id: int,
        db: Session = Depends(get_db),
        storage: ImageStorage = Depends(get_image_storage),
        claims: schemas.TokenClaims = Depends(get_current_claims),
):
    """
    Delete a recipe. Only the owner of the recipe or an admin can perform this action.
    """
    catalog.delete_recipe(db, recipe_id, claims.user_id, claims.roles, storage=storage)
    return {"message": "Recipe deleted successfully"}


@router.post("/{recipe_id}/rating")
def rate_recipe(
        recipe_id: int,
        rating: schemas.RatingCreate,
        db: Session = Depends(get_db),
        claims: schemas.TokenClaims = Depends(get_current_claims),
):
    """
    Rate a recipe from 1 to 5. Rating again overwrites the previous value.
    """
    db_rating = catalog.rate_recipe(db, recipe_id, claims.user_id, rating.value)
    return {"recipe_id": recipe_id, "value": db_rating.value}


@router.get("/{recipe_id}/rating", response_model=int)
def get_user_rating(
        recipe_id: int,
        db: Session = Depends(get_db),
        claims: schemas.TokenClaims = Depends(get_current_claims),
):
    """
    The caller's rating of the recipe, 0 when they have not rated it.
    """
    return catalog.get_user_rating(db, recipe_id, claims.user_id)


@router.get("/{recipe_id}/is-owner", response_model=bool)
def is_owner(
        recipe_id: int,
        db: Session = Depends(get_db),
        claims: schemas.TokenClaims = Depends(get_current_claims),
):
    return catalog.is_owner(db, recipe_id, claims.user_id)
