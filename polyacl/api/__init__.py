"""
HTTP adapter (FastAPI).
"""
