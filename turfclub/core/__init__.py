"""Core shared types and constants."""
