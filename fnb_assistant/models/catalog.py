"""
Menu products, ingredients and recipe composition (COGS).
"""

from typing import Optional

from sqlalchemy import String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import TenantBase, money


class Product(TenantBase):
    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    type: Mapped[str] = mapped_column(String, nullable=False, default="recipe")  # recipe, resale
    selling_price_dinein: Mapped[Optional[float]] = mapped_column(money(), nullable=True)
    selling_price_delivery: Mapped[Optional[float]] = mapped_column(money(), nullable=True)
    cost_price: Mapped[Optional[float]] = mapped_column(money(), nullable=True)

    ingredients: Mapped[list["ProductIngredient"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
    )


class Ingredient(TenantBase):
    __tablename__ = "ingredients"

    name: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    unit: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    price_per_unit: Mapped[Optional[float]] = mapped_column(money(), nullable=True)
    supplier_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    min_stock_level: Mapped[Optional[float]] = mapped_column(money(), nullable=True)
    current_stock: Mapped[Optional[float]] = mapped_column(money(), nullable=True)


class ProductIngredient(TenantBase):
    __tablename__ = "product_ingredients"

    product_id: Mapped[str] = mapped_column(
        String, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    ingredient_id: Mapped[str] = mapped_column(
        String, ForeignKey("ingredients.id", ondelete="CASCADE"), nullable=False
    )
    quantity: Mapped[Optional[float]] = mapped_column(money(), nullable=True)
    unit: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    product: Mapped["Product"] = relationship(back_populates="ingredients")
    ingredient: Mapped["Ingredient"] = relationship()
