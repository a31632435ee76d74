"""Tests for the realtime package."""
