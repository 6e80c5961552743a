"""Tests for the database package."""
