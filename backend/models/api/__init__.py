"""
API schemas (pydantic)
"""
