"""Domain models for the proxel solver."""
