# Blog Platform API
from blogplatform.api.router import api_router

__all__ = ["api_router"]
