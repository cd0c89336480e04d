"""Adapters for the external collaborators: git, Maven and the hosting platform."""
