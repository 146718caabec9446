"""Survival discrimination metrics."""

from .concordance import calculate_c_index

__all__ = ["calculate_c_index"]
