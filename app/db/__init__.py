from .base import Base
# Registers cache tables (CACHE_TYPE=database)
from .models.cache import CacheEntry, CacheStoreRecord
