"""EZSP protocol structures consumed by the backup extractor."""
