"""
Babellion HTTP API (FastAPI).
"""
