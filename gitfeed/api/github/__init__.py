"""Resource proxying GitHub repository metadata."""
