"""Persona package: phrase tables and reply wording."""

from src.persona.phrases import Persona, load_table

__all__ = ["Persona", "load_table"]
