"""Collaborators around the engine: persistence, usage data, enforcement."""
