"""Thesis lifecycle: status state machine, workflow and persistence."""
