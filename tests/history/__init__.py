"""Tests for the history package."""
