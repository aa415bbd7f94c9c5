"""Utility modules for the HyperShift Agent Service Operator."""
