"""Octopus Energy meter collector service."""
