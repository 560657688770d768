"""
Tests package for Mirror Bot

This package contains all unit and integration tests.

Test organization:
- test_chunker.py / test_remapper.py: Splitting text and carrying annotations into chunks
- test_annotations.py: Display text and link/hashtag extraction
- test_reconciler.py / test_store.py: Merging observed threads and persisting them
- test_timeline.py / test_source.py: Normalizing captured timeline payloads
- test_composer.py / test_publisher.py: Reply chains and platform fan-out
- test_bluesky_client.py / test_tumblr_client.py: Platform adapters
- test_cycle.py / test_config.py: The run loop and configuration
- conftest.py: Shared fixtures and test utilities
"""

__version__ = "1.0.0"
