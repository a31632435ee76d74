"""Tests for the query package."""
