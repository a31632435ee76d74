"""Tests for the monitoring package."""
