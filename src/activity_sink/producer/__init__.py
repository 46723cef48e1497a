"""Synthetic activity-event producer for local end-to-end runs."""
