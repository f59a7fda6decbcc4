"""Core domain package for listscrub.

Core contains phone normalization, CSV deduplication, and master-list merge
logic without any storage-specific code, keeping the business logic portable.
"""
