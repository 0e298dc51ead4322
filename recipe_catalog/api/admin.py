# api/admin.py
# Administrator endpoints: user management and catalog statistics.

import logging
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from recipe_catalog import accounts, crud, schemas
from recipe_catalog.api.auth import get_admin_claims
from recipe_catalog.db.session import get_db
from recipe_catalog.images import ImageStorage, get_image_storage

# Every route requires the ADMIN role
router = APIRouter(dependencies=[Depends(get_admin_claims)])

logger = logging.getLogger(__name__)


@router.get("/users", response_model=List[schemas.User])
def list_users(db: Session = Depends(get_db)):
    return accounts.list_users(db)


@router.delete("/users/{user_id}")
def delete_user(
        user_id: int,
        db: Session = Depends(get_db),
        storage: ImageStorage = Depends(get_image_storage),
        claims: schemas.TokenClaims = Depends(get_admin_claims),
):
    accounts.delete_user(db, user_id, claims.user_id, claims.roles, storage=storage)
    return {"message": "User deleted successfully"}


@router.put("/users/{user_id}/role", response_model=schemas.User)
def update_user(user_id: int, changes: schemas.UserAdminUpdate, db: Session = Depends(get_db)):
    """
    Change a user's role, email or username.
    """
    return accounts.update_user(db, user_id, changes)


@router.get("/recipes", response_model=List[schemas.Recipe])
def list_recipes(db: Session = Depends(get_db)):
    """
    Every recipe, private ones included.
    """
    return crud.get_recipes(db)


@router.get("/stats", response_model=schemas.AdminStats)
def get_stats(db: Session = Depends(get_db)):
    stats = accounts.get_stats(db)
    logger.debug(f"Catalog stats: {stats}")
    return stats
