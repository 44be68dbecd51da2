"""Core services and collaborator interfaces."""
