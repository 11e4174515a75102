"""Structural drift monitoring for concept-graph versions."""
