"""ClipDeck: supervised ffmpeg clip export and cached preview proxies."""

__version__ = "0.1.0"
