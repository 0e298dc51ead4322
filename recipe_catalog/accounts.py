# accounts.py
# User account operations: profile edits, credentials, profile pictures,
# administrator user management and catalog statistics.

import logging
import re
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from recipe_catalog import crud
from recipe_catalog import models
from recipe_catalog import schemas
from recipe_catalog.catalog import ADMIN_ROLE, get_user
from recipe_catalog.exceptions import ConflictError, InvalidArgumentError, UnauthorizedError
from recipe_catalog.images import ImageStorage, discard_images, get_image_storage, upload_all

# Get a logger instance
logger = logging.getLogger(__name__)

KNOWN_ROLES = {"USER", ADMIN_ROLE}
MIN_PASSWORD_LENGTH = 8


def _require_self(user_id: int, caller_id: int, what: str) -> None:
    if user_id != caller_id:
        logger.error(f"User {caller_id} tried to update the {what} of user {user_id}")
        raise UnauthorizedError(f"You can only update your own {what}")


def _picture_url(user: models.User, image_type: models.ImageType) -> Optional[str]:
    return next((i.url for i in user.images if i.image_type == image_type), None)


def _ensure_email_free(db: Session, email: str, user_id: int) -> None:
    existing = crud.get_user_by_email(db, email)
    if existing is not None and existing.id != user_id:
        logger.warning(f"Email {email} is already taken by user {existing.id}")
        raise ConflictError("Email already exists")


def _check_password_strength(password: str) -> None:
    if (
        len(password) < MIN_PASSWORD_LENGTH
        or not re.search(r"\d", password)
        or not re.search(r"[A-Z]", password)
    ):
        raise InvalidArgumentError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long "
            "and contain a digit and an uppercase letter"
        )


# --- Profile ---

def get_profile(db: Session, user_id: int) -> schemas.Profile:
    user = get_user(db, user_id)
    return schemas.Profile(
        id=user.id,
        username=user.username,
        description=user.description,
        photo_url=_picture_url(user, models.ImageType.PROFILE_PICTURE),
        background_url=_picture_url(user, models.ImageType.BACKGROUND_PICTURE),
    )


def update_profile(db: Session, user_id: int, caller_id: int, changes: schemas.ProfileUpdate) -> models.User:
    """
    Change the caller's username and description. A blank username is ignored.
    """
    _require_self(user_id, caller_id, "profile")
    user = get_user(db, user_id)
    if changes.username and changes.username.strip():
        user.username = changes.username.strip()
    if changes.description is not None:
        user.description = changes.description
    db.commit()
    db.refresh(user)
    return user


def update_email(db: Session, user_id: int, caller_id: int, changes: schemas.EmailUpdate) -> models.User:
    _require_self(user_id, caller_id, "email")
    user = get_user(db, user_id)
    if not crud.verify_password(changes.password, user.hashed_password):
        raise InvalidArgumentError("Password is incorrect")

    new_email = changes.new_email.strip().lower()
    _ensure_email_free(db, new_email, user_id)
    user.email = new_email
    db.commit()
    db.refresh(user)
    logger.info(f"User {user_id} changed their email")
    return user


def update_password(db: Session, user_id: int, caller_id: int, changes: schemas.PasswordUpdate) -> models.User:
    _require_self(user_id, caller_id, "password")
    user = get_user(db, user_id)
    if not crud.verify_password(changes.current_password, user.hashed_password):
        raise InvalidArgumentError("Current password is incorrect")
    _check_password_strength(changes.new_password)
    if crud.verify_password(changes.new_password, user.hashed_password):
        raise InvalidArgumentError("New password must be different from the current password")

    user.hashed_password = crud.get_password_hash(changes.new_password)
    db.commit()
    db.refresh(user)
    logger.info(f"User {user_id} changed their password")
    return user


def update_picture(
        db: Session,
        user_id: int,
        caller_id: int,
        content: bytes,
        image_type: models.ImageType,
        storage: Optional[ImageStorage] = None,
) -> models.Image:
    """
    Replace the user's profile or background picture.

    The new picture is uploaded first; the old one is removed from storage
    after the commit, on a best-effort basis.
    """
    if image_type == models.ImageType.RECIPE:
        raise InvalidArgumentError("Recipe photos belong to recipes, not users")
    _require_self(user_id, caller_id, "profile picture")
    storage = storage or get_image_storage()
    user = get_user(db, user_id)

    stored = upload_all(storage, [content])[0]
    stale = [i for i in user.images if i.image_type == image_type]
    for image in stale:
        user.images.remove(image)
    db_image = models.Image(url=stored.url, storage_id=stored.storage_id, image_type=image_type)
    user.images.append(db_image)

    try:
        db.commit()
    except Exception:
        db.rollback()
        discard_images(storage, [stored.storage_id])
        raise
    discard_images(storage, [i.storage_id for i in stale])
    db.refresh(db_image)
    logger.info(f"User {user_id} replaced their {image_type.value.lower()}")
    return db_image


# --- Administration ---

def list_users(db: Session) -> List[models.User]:
    return crud.get_users(db)


def update_user(db: Session, user_id: int, changes: schemas.UserAdminUpdate) -> models.User:
    """
    Administrator edit of role, email and username.

    A role is a comma-separated list of known roles, e.g. "USER,ADMIN".
    """
    user = get_user(db, user_id)

    if changes.email:
        email = changes.email.strip().lower()
        _ensure_email_free(db, email, user_id)
        user.email = email

    if changes.username and changes.username.strip():
        user.username = changes.username.strip()

    if changes.role and changes.role.strip():
        roles = [r.strip().upper() for r in changes.role.split(",") if r.strip()]
        unknown = sorted(set(roles) - KNOWN_ROLES)
        if unknown:
            raise InvalidArgumentError(f"Unknown roles: {', '.join(unknown)}")
        user.role = ",".join(roles)

    db.commit()
    db.refresh(user)
    logger.info(f"User {user_id} updated by an administrator (role={user.role})")
    return user


def delete_user(
        db: Session,
        user_id: int,
        caller_id: int,
        roles: Iterable[str],
        storage: Optional[ImageStorage] = None,
) -> None:
    """
    Delete an account together with its recipes, ratings, favourites and
    pictures. Users may delete themselves; administrators may delete anyone.
    """
    if user_id != caller_id and ADMIN_ROLE not in set(roles or ()):
        logger.error(f"User {caller_id} is not authorized to delete user {user_id}")
        raise UnauthorizedError("You don't have permission to delete this user")
    storage = storage or get_image_storage()
    user = get_user(db, user_id)

    stale_ids = [i.storage_id for i in user.images]
    for recipe in user.recipes:
        stale_ids.extend(i.storage_id for i in recipe.images)
        crud.detach_favourites(db, recipe.id)
        db.expire(recipe, ["favourited_by"])
    crud.clear_favourites(db, user_id)
    db.expire(user, ["favourite_recipes"])
    db.delete(user)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    discard_images(storage, stale_ids)
    logger.info(f"User {user_id} deleted by user {caller_id}")


def get_stats(db: Session) -> schemas.AdminStats:
    total_users = crud.count_users(db)
    admin_users = crud.count_users(db, admins_only=True)
    total_recipes = crud.count_recipes(db)
    public_recipes = crud.count_recipes(db, is_public=True)
    return schemas.AdminStats(
        total_users=total_users,
        admin_users=admin_users,
        regular_users=total_users - admin_users,
        total_recipes=total_recipes,
        public_recipes=public_recipes,
        private_recipes=total_recipes - public_recipes,
    )
