"""SQLModel entities and value models."""
