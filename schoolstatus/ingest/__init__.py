"""Fetching and classifying status sources."""
