import uuid
from sqlalchemy import Boolean, Column, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import relationship

from .database import Base


class Recipe(Base):
    __tablename__ = "recipes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, nullable=False, index=True)

    name = Column(String, nullable=False)
    pos_item_name = Column(String, nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    ingredients = relationship(
        "RecipeIngredient",
        back_populates="recipe",
        cascade="all, delete-orphan",
    )


class RecipeIngredient(Base):
    __tablename__ = "recipe_ingredients"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    recipe_id = Column(Uuid, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True)

    quantity = Column(Numeric(12, 4), nullable=False)  # per one unit sold
    unit = Column(String, nullable=False)  # 'oz', 'cup', 'g', 'each', ...

    recipe = relationship("Recipe", back_populates="ingredients")
