from src.providers.stock_image.pexels_provider import PexelsStockImageProvider

__all__ = ["PexelsStockImageProvider"]
