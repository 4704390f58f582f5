"""Starbox — Cube Map Package.

Dominant-axis cube projection, vertical-cross pixel addressing, the
streaming irradiance/temperature accumulator, and output channel
composition.
"""
