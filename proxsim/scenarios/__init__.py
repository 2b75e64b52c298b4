"""Runnable scenarios built on the reliability models."""
