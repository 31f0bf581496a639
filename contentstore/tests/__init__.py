"""
Tests Module: Unit and Integration Tests

Test Coverage:
    - Core types, errors and status rules
    - Object key strategies and sanitization
    - Memory, filesystem and S3 blob backends
    - In-memory repository and derivation graph
    - Object manager and content service
    - Configuration and structured logging
"""
