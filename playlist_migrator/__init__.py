"""Migrate Spotify playlists to YouTube."""

__version__ = "1.0.0"
