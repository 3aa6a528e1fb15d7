"""
Service layer: job persistence, result caching, source loading and scheduling.
"""
