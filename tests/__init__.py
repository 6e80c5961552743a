"""Tests for the political sentiment tracker."""
