"""Gesture log HTTP service."""
