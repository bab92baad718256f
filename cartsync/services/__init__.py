"""Supporting services: money helpers and user notifications."""
