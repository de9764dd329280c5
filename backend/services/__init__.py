"""
Services - lifecycle engine, broadcaster, IPFS gateway client
"""
