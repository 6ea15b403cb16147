"""Domain services: JSON-backed stores, media handling and playback planning."""
