"""HTTP host for the tool registry."""
