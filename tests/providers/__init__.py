"""Tests for the providers package."""
