"""
apiservice - HTTP client with auth refresh and response caching.
"""
