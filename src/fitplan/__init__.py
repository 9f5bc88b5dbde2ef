"""fitplan: follow an imported training/nutrition plan and track progress."""

__version__ = "0.3.0"
