from .all_models import Category, Product, Shop, Supplier

__all__ = [
    "Shop",
    "Category",
    "Supplier",
    "Product",
]
