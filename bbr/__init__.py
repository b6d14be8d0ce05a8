"""
Black Box Recorder storage

Tamper-evident, hash-chained storage for time-ordered, topic-partitioned message streams.
"""

__version__ = "0.1.0"
