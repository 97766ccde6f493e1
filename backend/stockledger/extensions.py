# Overview: Flask extension instances for the database and the inventory status cache.

from flask_sqlalchemy import SQLAlchemy

from .services.cache_service import InventoryStatusCache

db = SQLAlchemy()
status_cache = InventoryStatusCache()
