"""ShopIT backend: authentication, catalog, orders and payments."""

__version__ = "0.1.0"
