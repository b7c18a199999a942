"""
Retail Shop Reporting Engine
Sample Data Module
"""
from .generators import ShopDataGenerator
from .loader import load_frames, read_frames, seed_database

__all__ = ["ShopDataGenerator", "load_frames", "read_frames", "seed_database"]
