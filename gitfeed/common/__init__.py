"""Small helpers shared across gitfeed layers."""
