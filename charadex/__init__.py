"""charadex: file-backed character catalog with crawling and rarity ranking."""

__version__ = "0.3.0"
