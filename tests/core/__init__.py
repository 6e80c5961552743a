"""Tests for the core package."""
