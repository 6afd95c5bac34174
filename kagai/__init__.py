"""KAG wardrobe service: uploads, outfit recommendations, chat, try-on and store."""

__version__ = "0.1.0"
