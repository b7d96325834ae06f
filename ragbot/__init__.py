"""Retrieval-augmented chat and drafting backend for Superteam Vietnam."""
