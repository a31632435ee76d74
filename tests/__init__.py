"""
Tests for the Block Score System.
"""
