# models.py
# Defines the SQLAlchemy ORM models for the database tables.

import enum
from sqlalchemy import (
    Boolean, CheckConstraint, Column, Enum, Float, ForeignKey, Integer, String, Table, Text,
    UniqueConstraint, DateTime, func
)
from sqlalchemy.orm import relationship
from recipe_catalog.db.session import Base


class ImageType(str, enum.Enum):
    RECIPE = "RECIPE"
    PROFILE_PICTURE = "PROFILE_PICTURE"
    BACKGROUND_PICTURE = "BACKGROUND_PICTURE"


# Many-to-many between users and the recipes they bookmarked.
# The composite primary key rules out duplicate pairs.
favourite_recipes = Table(
    "favourite_recipes",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("recipe_id", Integer, ForeignKey("recipes.id", ondelete="CASCADE"), primary_key=True, index=True),
)


class User(Base):
    """
    User model for the 'users' table.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    username = Column(String, nullable=True)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default="USER")
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=func.now())

    recipes = relationship("Recipe", back_populates="owner", cascade="all, delete-orphan", order_by="Recipe.id")
    favourite_recipes = relationship(
        "Recipe", secondary=favourite_recipes, back_populates="favourited_by", order_by="Recipe.id"
    )
    ratings = relationship("Rating", back_populates="user", cascade="all, delete-orphan")
    images = relationship("Image", back_populates="user", cascade="all, delete-orphan", order_by="Image.id")

    @property
    def roles(self):
        return {r.strip() for r in (self.role or "").split(",") if r.strip()}


class Recipe(Base):
    """
    Recipe model for the 'recipes' table.
    """
    __tablename__ = "recipes"

    id = Column(Integer, primary_key=True, index=True)

    # Core fields
    name = Column(String, index=True, nullable=False)
    difficulty = Column(Integer, nullable=False, default=1)
    prepare_time = Column(Integer, nullable=False, default=0)  # minutes
    servings = Column(Integer, nullable=False, default=1)
    category = Column(String, index=True, nullable=True)
    is_public = Column(Boolean, nullable=False, default=False)
    language = Column(String, nullable=True)

    owner_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)

    # Audit
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # Relationships
    owner = relationship("User", back_populates="recipes")

    ingredients = relationship(
        "Ingredient", back_populates="recipe", cascade="all, delete-orphan", order_by="Ingredient.id"
    )
    steps = relationship(
        "Step", back_populates="recipe", cascade="all, delete-orphan", order_by="Step.position"
    )
    images = relationship(
        "Image", back_populates="recipe", cascade="all, delete-orphan", order_by="Image.id"
    )
    ratings = relationship("Rating", back_populates="recipe", cascade="all, delete-orphan")
    favourited_by = relationship("User", secondary=favourite_recipes, back_populates="favourite_recipes")

    def __str__(self):
        return f"{self.id}: {self.name}, by user {self.owner_id}"


class Ingredient(Base):
    """
    An ingredient line, owned by exactly one recipe.
    """
    __tablename__ = "ingredients"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    quantity = Column(Float, nullable=True)
    unit = Column(String, nullable=True)
    is_optional = Column(Boolean, nullable=False, default=False)
    language = Column(String, nullable=True)
    recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="CASCADE"), index=True, nullable=False)

    recipe = relationship("Recipe", back_populates="ingredients")


class Step(Base):
    """
    An instruction step for a recipe.
    """
    __tablename__ = "steps"

    id = Column(Integer, primary_key=True, index=True)
    position = Column(Integer, nullable=False)
    content = Column(String(256), nullable=False)
    recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="CASCADE"), index=True, nullable=False)

    recipe = relationship("Recipe", back_populates="steps")


class Image(Base):
    """
    A stored picture, attached either to a recipe or to a user.
    """
    __tablename__ = "images"
    __table_args__ = (
        CheckConstraint(
            "(recipe_id IS NULL) <> (user_id IS NULL)", name="ck_images_single_owner"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    url = Column(String, nullable=False)
    storage_id = Column(String, nullable=False)
    image_type = Column(Enum(ImageType), nullable=False)
    recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="CASCADE"), index=True, nullable=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=True)

    recipe = relationship("Recipe", back_populates="images")
    user = relationship("User", back_populates="images")


class Rating(Base):
    """
    One rating per (user, recipe) pair.
    """
    __tablename__ = "ratings"
    __table_args__ = (
        UniqueConstraint("user_id", "recipe_id", name="uq_ratings_user_recipe"),
    )

    id = Column(Integer, primary_key=True, index=True)
    value = Column(Integer, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="CASCADE"), index=True, nullable=False)

    user = relationship("User", back_populates="ratings")
    recipe = relationship("Recipe", back_populates="ratings")
