"""Tests for the ingestion package."""
