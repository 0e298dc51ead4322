# crud.py
# Database reads and writes. Recipe-side helpers never commit; the catalog
# service owns the transaction boundary.

import logging
from typing import List, Optional

from passlib.context import CryptContext
from sqlalchemy import delete, exists, func, insert, select
from sqlalchemy.orm import Session, selectinload

from recipe_catalog import models
from recipe_catalog import schemas

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# Get a logger instance
logger = logging.getLogger(__name__)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


# --- User CRUD Functions ---
def get_user(db: Session, user_id: int):
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_users(db: Session) -> List[models.User]:
    return db.query(models.User).order_by(models.User.id).all()


def count_users(db: Session, admins_only: bool = False) -> int:
    query = db.query(func.count(models.User.id))
    if admins_only:
        query = query.filter(models.User.role.contains("ADMIN"))
    return query.scalar()


def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email.strip().lower()).first()


def create_user(db: Session, user: schemas.UserCreate, role: str = "USER"):
    db_user = models.User(
        email=user.email.strip().lower(),
        username=user.username,
        hashed_password=get_password_hash(user.password),
        role=role,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


# --- Recipe CRUD Functions ---
def _recipe_query(db: Session):
    return db.query(models.Recipe).options(
        selectinload(models.Recipe.ingredients),
        selectinload(models.Recipe.steps),
        selectinload(models.Recipe.images),
        selectinload(models.Recipe.ratings),
    )


def get_recipe(db: Session, recipe_id: int) -> Optional[models.Recipe]:
    """
    Retrieve a single recipe with its ingredients, steps, images and ratings.
    """
    logger.debug(f"Retrieving recipe with id {recipe_id}")
    return _recipe_query(db).filter(models.Recipe.id == recipe_id).first()


def get_recipes(db: Session, public_only: bool = False) -> List[models.Recipe]:
    """
    Retrieve every recipe ordered by id, optionally only the public ones.
    """
    logger.debug(f"Retrieving all recipes (public_only={public_only})")
    query = _recipe_query(db)
    if public_only:
        query = query.filter(models.Recipe.is_public.is_(True))
    return query.order_by(models.Recipe.id).all()


def count_recipes(db: Session, is_public: Optional[bool] = None) -> int:
    query = db.query(func.count(models.Recipe.id))
    if is_public is not None:
        query = query.filter(models.Recipe.is_public.is_(is_public))
    return query.scalar()


def search_recipes(db: Session, query: str) -> List[models.Recipe]:
    logger.debug(f"Searching recipes by name: {query!r}")
    return (
        _recipe_query(db)
        .filter(models.Recipe.name.icontains(query, autoescape=True))
        .order_by(models.Recipe.id)
        .all()
    )


def get_user_recipes(db: Session, user_id: int) -> List[models.Recipe]:
    return _recipe_query(db).filter(models.Recipe.owner_id == user_id).order_by(models.Recipe.id).all()


def get_user_favourites(db: Session, user_id: int) -> List[models.Recipe]:
    return (
        _recipe_query(db)
        .join(models.favourite_recipes, models.favourite_recipes.c.recipe_id == models.Recipe.id)
        .filter(models.favourite_recipes.c.user_id == user_id)
        .order_by(models.Recipe.id)
        .all()
    )


# --- Rating Functions ---
def get_rating(db: Session, recipe_id: int, user_id: int) -> Optional[models.Rating]:
    return (
        db.query(models.Rating)
        .filter(models.Rating.recipe_id == recipe_id, models.Rating.user_id == user_id)
        .first()
    )


# --- Favourite Functions ---
def is_favourite(db: Session, user_id: int, recipe_id: int) -> bool:
    table = models.favourite_recipes
    stmt = select(exists().where(table.c.user_id == user_id, table.c.recipe_id == recipe_id))
    return bool(db.execute(stmt).scalar())


def add_favourite(db: Session, user_id: int, recipe_id: int) -> None:
    db.execute(insert(models.favourite_recipes).values(user_id=user_id, recipe_id=recipe_id))


def remove_favourite(db: Session, user_id: int, recipe_id: int) -> int:
    table = models.favourite_recipes
    result = db.execute(delete(table).where(table.c.user_id == user_id, table.c.recipe_id == recipe_id))
    return result.rowcount


def detach_favourites(db: Session, recipe_id: int) -> List[int]:
    """
    Remove a recipe from every user's favourites. Returns the affected user ids.
    """
    table = models.favourite_recipes
    user_ids = list(db.execute(select(table.c.user_id).where(table.c.recipe_id == recipe_id)).scalars())
    db.execute(delete(table).where(table.c.recipe_id == recipe_id))
    return user_ids


def clear_favourites(db: Session, user_id: int) -> int:
    """
    Empty a user's favourites. Returns the number of removed entries.
    """
    table = models.favourite_recipes
    return db.execute(delete(table).where(table.c.user_id == user_id)).rowcount
