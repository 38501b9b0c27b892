"""
Test suite for the file archiver.

Covers path resolution, checksums, both archive writers, the writer factory,
reading archives back, build orchestration, YAML build configs and the CLI.
"""
