"""Offline rarity ranking over the whole store."""
