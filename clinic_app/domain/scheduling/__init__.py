from .router import availability_router, router

__all__ = ["router", "availability_router"]
