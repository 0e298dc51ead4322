# api/auth.py
# Handles user registration, token issuance and resolving bearer tokens
# into the caller's id and roles.

import logging
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from datetime import timedelta, datetime, timezone

from jose import JWTError, jwt

# Import local modules
from recipe_catalog import crud
from recipe_catalog import schemas
from recipe_catalog import models
from recipe_catalog.catalog import ADMIN_ROLE
from recipe_catalog.db.session import get_db
from recipe_catalog.core.config import settings
from recipe_catalog.core.rate_limit import limiter
from recipe_catalog.exceptions import InvalidCredentialError

# OAuth2 scheme definition
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token")

# Create an API router
router = APIRouter()

# Get a logger instance
logger = logging.getLogger(__name__)


# --- Utility Functions for JWT ---

def create_access_token(data: dict, expires_delta: timedelta | None = None):
    """
    Creates a new JWT access token.
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=15)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def create_user_token(user: models.User, expires_delta: timedelta | None = None) -> str:
    return create_access_token(
        data={"sub": user.email, "id": str(user.id), "roles": sorted(user.roles)},
        expires_delta=expires_delta,
    )


def resolve_token(token: str) -> schemas.TokenClaims:
    """
    Decode a bearer token into the caller's id and roles.
    Raises InvalidCredentialError when the token is malformed, badly signed or expired.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.error("Invalid Auth Token")
        raise InvalidCredentialError("Could not validate credentials") from e

    user_id = payload.get("id")
    roles = payload.get("roles") or []
    if user_id is None or not isinstance(roles, list):
        logger.error("Token is missing the id or roles claim")
        raise InvalidCredentialError("Could not validate credentials")
    try:
        return schemas.TokenClaims(user_id=int(user_id), roles=set(roles))
    except (TypeError, ValueError) as e:
        raise InvalidCredentialError("Could not validate credentials") from e


# --- Dependency for Getting Current Caller ---

async def get_current_claims(request: Request, token: str = Depends(oauth2_scheme)) -> schemas.TokenClaims:
    """
    Resolves the bearer token of the request.
    This function is a dependency that can be used to protect endpoints.
    """
    try:
        claims = resolve_token(token)
    except InvalidCredentialError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    # Picked up by the structured logging middleware
    request.state.claims = claims
    logger.debug(f"Resolved caller {claims.user_id} with roles {sorted(claims.roles)}")
    return claims


async def get_admin_claims(claims: schemas.TokenClaims = Depends(get_current_claims)) -> schemas.TokenClaims:
    """
    Like get_current_claims, but only lets administrators through.
    """
    if ADMIN_ROLE not in claims.roles:
        logger.warning(f"User {claims.user_id} called an administrator endpoint")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrator role required")
    return claims


# --- Authentication Endpoints ---

@router.post("/register", response_model=schemas.User, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def register(request: Request, user: schemas.UserCreate, db: Session = Depends(get_db)):
    """
    Register a new user account.
    """
    if crud.get_user_by_email(db, email=user.email):
        logger.warning(f"Registration attempt for existing email {user.email}")
        raise HTTPException(status_code=409, detail="Email already registered")
    return crud.create_user(db, user)


@router.post("/token", response_model=schemas.Token)
@limiter.limit("10/minute")
def login(request: Request, form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """
    Endpoint to log in a user and get an access token.
    """
    user = crud.get_user_by_email(db, email=form_data.username)
    if not user or not crud.verify_password(form_data.password, user.hashed_password):
        logger.warning("Incorrect password")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_user_token(user, expires_delta=access_token_expires)
    return {"access_token": access_token, "token_type": "bearer"}
