"""Matching, costing, ranking and job orchestration services."""
