"""Configuration loading: YAML file plus environment overrides."""
