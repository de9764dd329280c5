"""
Request authentication: JWT sessions and credential hashing
"""
