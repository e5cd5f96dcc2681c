"""Land Grid: cell addressing, selection and ownership for a virtual land game."""

__version__ = "0.1.0"
