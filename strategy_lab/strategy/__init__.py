"""Strategy parameters and entry rules."""
