"""Swap plan encoding, router calldata and execution supervision."""
