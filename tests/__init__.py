"""Test package marker.

The file exposes no symbols; it keeps ``tests.unit`` importable for tooling
that references the suites explicitly and must stay side-effect free.
"""
