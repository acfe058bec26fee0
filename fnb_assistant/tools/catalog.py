"""
Catalog tools: menu products (with recipe composition) and ingredients.
"""

from typing import Literal, Optional

from sqlalchemy.orm import selectinload

from ..models import Ingredient, Product, ProductIngredient
from .formatting import cap_limit, format_eur, take, with_truncation
from .registry import ToolContext, ToolInput, tool

# Recipe breakdowns are only attached to small result sets
MAX_PRODUCTS_WITH_INGREDIENTS = 10


class QueryProductsInput(ToolInput):
    name: Optional[str] = None
    category: Optional[str] = None
    type: Optional[Literal["recipe", "resale"]] = None
    include_ingredients: bool = False
    limit: Optional[int] = None


@tool(
    name="query_products",
    description=(
        "Get product information including pricing, category, type, and ingredient composition. "
        "Use when the user asks about products, menu items, pricing, or product costs."
    ),
    parameters={
        "type": "object",
        "properties": {
            "name": {"type": "string", "description": "Filter by product name (partial match)"},
            "category": {"type": "string", "description": "Filter by product category"},
            "type": {"type": "string", "enum": ["recipe", "resale"], "description": "Filter by product type"},
            "include_ingredients": {
                "type": "boolean",
                "description": "Include ingredient breakdown (default false, only for up to 10 products)",
            },
            "limit": {"type": "integer", "description": "Max results (default 50, max 100)"},
        },
        "required": [],
    },
    input_model=QueryProductsInput,
    category="catalog",
)
async def query_products(params: QueryProductsInput, ctx: ToolContext) -> dict:
    stmt = ctx.select(Product).order_by(Product.name.asc())
    if params.name:
        stmt = stmt.where(Product.name.icontains(params.name, autoescape=True))
    if params.category:
        stmt = stmt.where(Product.category == params.category)
    if params.type:
        stmt = stmt.where(Product.type == params.type)

    limit = cap_limit(params.limit, default=50, maximum=100)
    rows = (await ctx.session.execute(stmt.limit(limit + 1))).scalars().all()
    products, truncated = take(rows, limit)

    results = [
        {
            "id": p.id,
            "name": p.name,
            "category": p.category,
            "type": p.type,
            "price_dinein": format_eur(p.selling_price_dinein),
            "price_delivery": format_eur(p.selling_price_delivery),
            "cost_price": format_eur(p.cost_price) if p.cost_price else None,
        }
        for p in products
    ]

    if params.include_ingredients and len(results) <= MAX_PRODUCTS_WITH_INGREDIENTS:
        recipe_stmt = (
            ctx.select(ProductIngredient)
            .where(ProductIngredient.product_id.in_([p["id"] for p in results]))
            .options(selectinload(ProductIngredient.ingredient))
        )
        by_product: dict[str, list[dict]] = {}
        for pi in (await ctx.session.execute(recipe_stmt)).scalars().all():
            ing = pi.ingredient
            by_product.setdefault(pi.product_id, []).append({
                "name": ing.name if ing else None,
                "quantity": pi.quantity,
                "unit": pi.unit,
                "unit_cost": format_eur(ing.price_per_unit) if ing and ing.price_per_unit else None,
            })
        for product in results:
            product["ingredients"] = by_product.get(product["id"], [])

    return with_truncation(
        {"total_products": len(results), "products": results},
        truncated, len(results), "products",
    )


class QueryIngredientsInput(ToolInput):
    name: Optional[str] = None
    category: Optional[str] = None
    supplier_name: Optional[str] = None
    sort_by: Literal["name", "price_per_unit", "category"] = "name"
    limit: Optional[int] = None


@tool(
    name="query_ingredients",
    description=(
        "Get ingredient information with pricing, units, stock levels and supplier details. "
        "Use when the user asks about ingredients, raw materials, or ingredient costs."
    ),
    parameters={
        "type": "object",
        "properties": {
            "name": {"type": "string", "description": "Filter by ingredient name (partial match)"},
            "category": {"type": "string", "description": "Filter by category"},
            "supplier_name": {"type": "string", "description": "Filter by supplier (partial match)"},
            "sort_by": {
                "type": "string",
                "enum": ["name", "price_per_unit", "category"],
                "description": "Sort by field",
            },
            "limit": {"type": "integer", "description": "Max results (default 50, max 100)"},
        },
        "required": [],
    },
    input_model=QueryIngredientsInput,
    category="catalog",
)
async def query_ingredients(params: QueryIngredientsInput, ctx: ToolContext) -> dict:
    stmt = ctx.select(Ingredient)
    if params.name:
        stmt = stmt.where(Ingredient.name.icontains(params.name, autoescape=True))
    if params.category:
        stmt = stmt.where(Ingredient.category == params.category)
    if params.supplier_name:
        stmt = stmt.where(Ingredient.supplier_name.icontains(params.supplier_name, autoescape=True))
    stmt = stmt.order_by(getattr(Ingredient, params.sort_by).asc())

    limit = cap_limit(params.limit, default=50, maximum=100)
    rows = (await ctx.session.execute(stmt.limit(limit + 1))).scalars().all()
    ingredients, truncated = take(rows, limit)

    return with_truncation(
        {
            "total_ingredients": len(ingredients),
            "ingredients": [
                {
                    "id": ing.id,
                    "name": ing.name,
                    "category": ing.category,
                    "unit": ing.unit,
                    "price_per_unit": format_eur(ing.price_per_unit),
                    "supplier": ing.supplier_name,
                    "current_stock": ing.current_stock,
                    "min_stock": ing.min_stock_level,
                    "below_min_stock": (
                        ing.current_stock is not None
                        and ing.min_stock_level is not None
                        and ing.current_stock < ing.min_stock_level
                    ),
                }
                for ing in ingredients
            ],
        },
        truncated, len(ingredients), "ingredients",
    )
