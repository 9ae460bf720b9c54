"""Core access-validation logic: route resolution, models and redirect arbitration.

This package contains pure logic with no storage or network dependencies.
The I/O side (status client, key-value stores, the guard orchestration)
lives in accessguard/.
"""
