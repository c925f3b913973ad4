"""Infrastructure adapters: database and payment gateway."""
