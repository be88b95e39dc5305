"""Outputs subpackage: track maps and fit diagnostics plots.

Modules are imported on demand so fitting never loads matplotlib.
"""
