"""
Data Ingestion Module

Handles fetching and normalizing data from external sources:
- Official time-series API for the CPI series
- Data912 for local stocks, CEDEARs and bonds
- yfinance, Coinbase and CoinGecko as secondary sources
"""

__version__ = "0.1.0"
