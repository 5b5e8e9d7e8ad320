"""Sprachheld: German learning progress, vocabulary review and AI lessons."""
