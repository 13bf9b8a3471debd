"""Camera capture backends."""
