"""Worker that flags teams whose GitHub repository has been pushed."""
