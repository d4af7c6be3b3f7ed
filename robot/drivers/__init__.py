"""Hardware drivers."""
