"""Parsing helpers shared by the domain and CLI layers."""
