"""
s3wire test suite.
"""
