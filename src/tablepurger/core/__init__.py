"""Core building blocks: keys, queries, staging, storage, config, logging."""
