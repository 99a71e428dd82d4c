"""
HTTP layer for the Contact Extraction API.
"""
