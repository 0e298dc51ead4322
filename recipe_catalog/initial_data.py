import logging
from sqlalchemy.orm import Session

from recipe_catalog import crud, schemas
from recipe_catalog.db.session import SessionLocal
from recipe_catalog.core.config import settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ADMIN_ROLES = "USER,ADMIN"


def init_db(db: Session) -> None:
    # Check if superuser exists
    user = crud.get_user_by_email(db, email=settings.FIRST_SUPERUSER_EMAIL)
    if user:
        logger.info(f"Superuser {settings.FIRST_SUPERUSER_EMAIL} already exists.")
        if "ADMIN" not in user.roles:
            user.role = ADMIN_ROLES
            db.add(user)
            db.commit()
            logger.info("Granted ADMIN role to existing superuser.")
    else:
        logger.info(f"Creating superuser {settings.FIRST_SUPERUSER_EMAIL}...")
        user_in = schemas.UserCreate(
            email=settings.FIRST_SUPERUSER_EMAIL,
            password=settings.FIRST_SUPERUSER_PASSWORD,
            username="admin",
        )
        crud.create_user(db, user_in, role=ADMIN_ROLES)
        logger.info("Superuser created successfully.")

def main() -> None:
    db = SessionLocal()
    try:
        init_db(db)
    finally:
        db.close()

if __name__ == "__main__":
    main()
