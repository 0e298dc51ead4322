# api/users.py
# Profile endpoints for the authenticated user.

from typing import List
from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from recipe_catalog import accounts, catalog, models, schemas
from recipe_catalog.api.auth import get_current_claims
from recipe_catalog.db.session import get_db
from recipe_catalog.images import ImageStorage, get_image_storage

router = APIRouter()


@router.get("/me", response_model=schemas.User)
def read_me(
    db: Session = Depends(get_db),
    claims: schemas.TokenClaims = Depends(get_current_claims),
):
    return catalog.get_user(db, claims.user_id)


@router.get("/me/profile", response_model=schemas.Profile)
def read_my_profile(
    db: Session = Depends(get_db),
    claims: schemas.TokenClaims = Depends(get_current_claims),
):
    """
    The caller's public profile, with picture URLs.
    """
    return accounts.get_profile(db, claims.user_id)


@router.get("/me/recipes", response_model=List[schemas.RecipeSummary])
def read_my_recipes(
    db: Session = Depends(get_db),
    claims: schemas.TokenClaims = Depends(get_current_claims),
):
    """
    Recipes owned by the caller, with their average rating.
    """
    return catalog.get_user_recipes(db, claims.user_id)


@router.get("/me/favourites", response_model=List[schemas.RecipeSummary])
def read_my_favourites(
    db: Session = Depends(get_db),
    claims: schemas.TokenClaims = Depends(get_current_claims),
):
    """
    Recipes the caller bookmarked, with their average rating.
    """
    return catalog.get_user_favourites(db, claims.user_id)


@router.put("/{user_id}/profile", response_model=schemas.User)
def update_profile(
    user_id: int,
    changes: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    claims: schemas.TokenClaims = Depends(get_current_claims),
):
    return accounts.update_profile(db, user_id, claims.user_id, changes)


@router.put("/{user_id}/email", response_model=schemas.User)
def update_email(
    user_id: int,
    changes: schemas.EmailUpdate,
    db: Session = Depends(get_db),
    claims: schemas.TokenClaims = Depends(get_current_claims),
):
    """
    Change the caller's email. Requires the current password.
    """
    return accounts.update_email(db, user_id, claims.user_id, changes)


@router.put("/{user_id}/password", response_model=schemas.User)
def update_password(
    user_id: int,
    changes: schemas.PasswordUpdate,
    db: Session = Depends(get_db),
    claims: schemas.TokenClaims = Depends(get_current_claims),
):
    return accounts.update_password(db, user_id, claims.user_id, changes)


@router.put("/{user_id}/profile-picture", response_model=schemas.PictureUrl)
def update_profile_picture(
    user_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    storage: ImageStorage = Depends(get_image_storage),
    claims: schemas.TokenClaims = Depends(get_current_claims),
):
    image = accounts.update_picture(
        db, user_id, claims.user_id, file.file.read(), models.ImageType.PROFILE_PICTURE, storage=storage
    )
    return {"url": image.url}


@router.put("/{user_id}/background-picture", response_model=schemas.PictureUrl)
def update_background_picture(
    user_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    storage: ImageStorage = Depends(get_image_storage),
    claims: schemas.TokenClaims = Depends(get_current_claims),
):
    image = accounts.update_picture(
        db, user_id, claims.user_id, file.file.read(), models.ImageType.BACKGROUND_PICTURE, storage=storage
    )
    return {"url": image.url}


@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    storage: ImageStorage = Depends(get_image_storage),
    claims: schemas.TokenClaims = Depends(get_current_claims),
):
    """
    Delete an account. Users may delete themselves; administrators anyone.
    """
    accounts.delete_user(db, user_id, claims.user_id, claims.roles, storage=storage)
    return {"message": "User deleted successfully"}
