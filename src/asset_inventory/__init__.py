#!/usr/bin/env python3
"""
Asset Inventory - Bulk Import Pipeline

Main package for asset-inventory providing header auto-mapping, nested path
resolution, row validation and batch import of IT assets from CSV or JSON files.

Version: 1.2.0
"""

__version__ = "1.2.0"
__author__ = "Asset Inventory Team"
__description__ = "Bulk import pipeline for the IT asset inventory"
