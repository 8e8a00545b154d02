"""Combining per-source verdicts into one cached canonical status."""
