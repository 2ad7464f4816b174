"""PyQt6 viewer that draws live player positions on the world map."""

__version__ = "0.4.0"

__all__ = ["__version__"]
