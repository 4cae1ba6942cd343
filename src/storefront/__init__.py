"""storefront - catalog, checkout pricing and order lifecycle for an online shop."""

__version__ = "0.1.0"
