"""
Basket and universe definitions used by the synthetic benchmarks and the
real risk-free resolver.
"""

# Liquid local stocks for the equal-weight MERVAL proxy
MERVAL_BASKET = (
    'GGAL', 'YPFD', 'PAM', 'TGSU2', 'TXAR', 'BYMA', 'ALUA', 'CEPU', 'PAMP',
    'SUPV', 'BMA', 'CRES', 'TECO2', 'MIRG', 'COME', 'BIOX', 'VIST',
)
MERVAL_MIN_COMPONENTS = 8
# A MAX window still caps the synthetic MERVAL at ten years
MERVAL_MAX_LOOKBACK_MONTHS = 120

NASDAQ_100_TICKERS = (
    'NVDA', 'AAPL', 'MSFT', 'AMZN', 'GOOGL', 'GOOG', 'META', 'AVGO', 'TSLA', 'WMT',
    'ASML', 'MU', 'COST', 'AMD', 'NFLX', 'PLTR', 'CSCO', 'LRCX', 'AMAT', 'TMUS',
    'INTC', 'LIN', 'PEP', 'TXN', 'AMGN', 'KLAC', 'GILD', 'ISRG', 'ADI', 'HON',
    'QCOM', 'SHOP', 'PDD', 'ARM', 'BKNG', 'PANW', 'APP', 'VRTX', 'CMCSA', 'CEG',
    'SBUX', 'ADBE', 'INTU', 'CRWD', 'MELI', 'WDC', 'MAR', 'STX', 'ADP', 'REGN',
    'MNST', 'SNPS', 'ORLY', 'CTAS', 'CDNS', 'MDLZ', 'CSX', 'ABNB', 'WBD', 'AEP',
    'DASH', 'MRVL', 'PCAR', 'ROST', 'NXPI', 'FTNT', 'BKR', 'MPWR', 'FAST', 'FER',
    'IDXX', 'EA', 'EXC', 'FANG', 'ADSK', 'XEL', 'CCEP', 'ALNY', 'DDOG', 'MSTR',
    'MCHP', 'ODFL', 'KDP', 'WDAY', 'PYPL', 'GEHC', 'TRI', 'CPRT', 'TTWO', 'AXON',
    'ROP', 'PAYX', 'INSM', 'CTSH', 'CHTR', 'KHC', 'ZS', 'DXCM', 'VRSK', 'TEAM',
    'CSGP',
)
NASDAQ_MIN_COMPONENTS = 1
NASDAQ_MIN_TICKERS_WARNING = 60

# Inflation-linked (CER) bonds accepted as real risk-free proxies
CER_TICKERS = (
    'TZX26', 'X31L6', 'TZX06', 'TX26', 'X30N6', 'TZXD6', 'TZXM7', 'TZXA7',
    'TZXY7', 'TZX27', 'TZXD7', 'TZX28', 'TX28', 'TX31', 'DICP', 'PARP',
)
