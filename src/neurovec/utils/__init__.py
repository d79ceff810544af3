"""Utility helpers for Neurovec."""

from neurovec.utils.core_utils import clamp_weights, next_power_of_two, swap_entries

__all__ = ["clamp_weights", "next_power_of_two", "swap_entries"]
