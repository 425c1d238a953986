"""Middleware for the FastAPI application."""
