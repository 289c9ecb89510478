"""Configuration modules for k2d (paths and runtime settings)."""
