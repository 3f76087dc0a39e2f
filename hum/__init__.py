"""Hum: a music notation language, synthesizer and score editor."""

__version__ = "0.6.0"
