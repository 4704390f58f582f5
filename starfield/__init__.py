"""Starbox — Starfield Package.

Galaxy orientation sampling, star positions, and the empirical
mass → radius / luminosity / temperature model, plus the YAML
configuration loader shared by the whole generator.
"""
