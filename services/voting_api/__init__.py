"""Meme war voting API service."""
