# schemas.py
# Defines the Pydantic models (schemas) for data validation and serialization.

import math
from pydantic import BaseModel, EmailStr, ConfigDict, Field, model_validator
from typing import Any, Iterable, List, Optional, Set

from recipe_catalog.models import ImageType


def average_rating(ratings: Iterable[Any]) -> int:
    """
    Mean of the rating values rounded half up, 0 when there are none.
    """
    values = [r.value for r in ratings or []]
    if not values:
        return 0
    return math.floor(sum(values) / len(values) + 0.5)


# --- Ingredient Schemas ---
class IngredientBase(BaseModel):
    name: str
    quantity: Optional[float] = None
    unit: Optional[str] = None
    is_optional: bool = False

class IngredientCreate(IngredientBase):
    # Ignored on create: ingredients always take the recipe language.
    language: Optional[str] = None

class Ingredient(IngredientBase):
    id: Optional[int] = None
    language: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)

# --- Step Schemas ---
class StepCreate(BaseModel):
    content: str = Field(..., max_length=256)

class Step(StepCreate):
    position: int
    model_config = ConfigDict(from_attributes=True)

# --- Image Schemas ---
class Image(BaseModel):
    id: int
    url: str
    image_type: ImageType
    model_config = ConfigDict(from_attributes=True)

# --- User Schemas ---
class UserBase(BaseModel):
    email: EmailStr
    username: Optional[str] = None

class UserCreate(UserBase):
    password: str = Field(..., min_length=6)

class User(UserBase):
    id: int
    role: str
    description: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)

class ProfileUpdate(BaseModel):
    username: Optional[str] = None
    description: Optional[str] = None

class EmailUpdate(BaseModel):
    new_email: EmailStr
    password: str

class PasswordUpdate(BaseModel):
    current_password: str
    new_password: str

class UserAdminUpdate(BaseModel):
    """
    Administrator edit of an account. Missing or blank fields are left alone.
    """
    role: Optional[str] = None
    email: Optional[EmailStr] = None
    username: Optional[str] = None

class Profile(BaseModel):
    id: int
    username: Optional[str] = None
    description: Optional[str] = None
    photo_url: Optional[str] = None
    background_url: Optional[str] = None

class PictureUrl(BaseModel):
    url: str

class AdminStats(BaseModel):
    total_users: int
    admin_users: int
    regular_users: int
    total_recipes: int
    public_recipes: int
    private_recipes: int

# --- Recipe Schemas ---

class RecipeBase(BaseModel):
    name: str = Field(..., min_length=1)
    difficulty: int = Field(1, ge=1)
    prepare_time: int = Field(0, ge=0)
    servings: int = Field(1, ge=0)
    category: Optional[str] = None
    is_public: bool = False
    language: Optional[str] = None

class RecipeCreate(RecipeBase):
    ingredients: List[IngredientCreate] = []
    steps: List[StepCreate] = []

# Updates replace every field and both collections.
RecipeUpdate = RecipeCreate


class Recipe(RecipeBase):
    id: int
    owner_id: int
    ingredients: List[Ingredient] = []
    steps: List[Step] = []
    images: List[Image] = []
    avg_rating: int = 0

    @model_validator(mode='before')
    @classmethod
    def transform_from_orm(cls, data: Any) -> Any:
        if hasattr(data, "ratings"):  # Is an ORM object
            return {
                "id": data.id,
                "owner_id": data.owner_id,
                "name": data.name,
                "difficulty": data.difficulty,
                "prepare_time": data.prepare_time,
                "servings": data.servings,
                "category": data.category,
                "is_public": data.is_public,
                "language": data.language,
                "ingredients": data.ingredients,
                "steps": data.steps,
                "images": data.images,
                "avg_rating": average_rating(data.ratings),
            }
        return data

    model_config = ConfigDict(from_attributes=True)


class RecipeSummary(BaseModel):
    """
    Compact projection used on the profile pages.
    """
    id: int
    name: str
    servings: int
    difficulty: int
    prepare_time: int
    category: Optional[str] = None
    language: Optional[str] = None
    avg_rating: int = 0
    images: List[Image] = []
    ingredients: List[Ingredient] = []

    @model_validator(mode='before')
    @classmethod
    def transform_from_orm(cls, data: Any) -> Any:
        if hasattr(data, "ratings"):
            return {
                "id": data.id,
                "name": data.name,
                "servings": data.servings,
                "difficulty": data.difficulty,
                "prepare_time": data.prepare_time,
                "category": data.category,
                "language": data.language,
                "avg_rating": average_rating(data.ratings),
                "images": data.images,
                "ingredients": data.ingredients,
            }
        return data

    model_config = ConfigDict(from_attributes=True)


class RecipePage(BaseModel):
    content: List[Recipe]
    total_pages: int


class RecipeFilterCriteria(BaseModel):
    """
    Browse criteria. Every field is optional; missing ones do not narrow.
    """
    categories: Optional[List[str]] = None
    difficulty: Optional[int] = None
    servings: Optional[str] = None
    prepare_time: Optional[str] = None
    language: Optional[str] = None
    ingredients: Optional[List[str]] = None


# --- Rating / Favourite Schemas ---
class RatingCreate(BaseModel):
    value: int

class FavouriteRequest(BaseModel):
    recipe_id: int


# --- Token Schemas ---
class Token(BaseModel):
    access_token: str
    token_type: str

class TokenClaims(BaseModel):
    user_id: int
    roles: Set[str] = set()
