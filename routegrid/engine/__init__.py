"""Presentation-state engine: view composition, layout and mutations."""
