"""Tests for the scheduling package."""
