"""Aria language client.

Locates and supervises the Aria language server and overlays inlay hints
fetched from it onto open documents.
"""

__version__ = "0.1.0"
