"""Domain modules for the marketplace credit workflow."""
