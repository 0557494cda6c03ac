"""
Analysis Engine Module

Real-return (CPI-deflated) analytics:
- Alignment, resampling and windowing of price series
- Deflation, log returns with split filtering, beta
- Data quality verdicts
- Equal-weight synthetic benchmarks and real risk-free rates
"""

__version__ = "0.1.0"
