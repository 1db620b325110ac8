"""Indicator library, feature extraction, and signal scoring."""
