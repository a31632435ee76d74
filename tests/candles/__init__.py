"""Tests for the candles package."""
