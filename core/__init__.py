"""Almond domain display logic."""
