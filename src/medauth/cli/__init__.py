"""MedAuth command-line interface."""
