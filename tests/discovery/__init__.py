"""Tests for the discovery package."""
