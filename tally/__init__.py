"""Scoring and tally computation engine for judged competitions."""
