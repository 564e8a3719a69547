"""Statement text extraction, AI parsing and boilerplate filtering."""
