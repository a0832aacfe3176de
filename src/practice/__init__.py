"""Coding practice tracker: spaced-repetition reviews over solved problems."""

__version__ = "0.1.0"
