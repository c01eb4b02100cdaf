"""Meme war voting services."""
