"""Command line host for the intensity pipeline."""
