"""topupshop - storefront and operator dashboard backend for digital top-ups."""

__version__ = "0.1.0"
