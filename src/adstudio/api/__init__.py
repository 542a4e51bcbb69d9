"""HTTP surface for the studio."""
