"""Core infrastructure shared by dashboard components."""
