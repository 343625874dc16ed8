"""
Source clients and the request plumbing they share.

Import submodules directly (``from charadex.scrapers.anilist import
AniListClient``); this package deliberately re-exports nothing so that the
store can depend on ``scrapers.errors`` without pulling in the clients.
"""
