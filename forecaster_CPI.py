#!/usr/bin/env python3
"""
Monthly CPI forecasting with automatic seasonal ARIMA selection.

Usage
-----
    python forecaster_CPI.py --help
    python forecaster_CPI.py --countries USA,GBR,BRA,ZAF,IND
    python forecaster_CPI.py --series-csv data/cpi_USA.csv --horizon 12

The implementation lives in cpi_forecaster_src/; see cpi_forecaster_src/main.py
for the workflow and config/forecast_config.yaml for the defaults.
"""

import sys

if __name__ == "__main__":
    from cpi_forecaster_src.main import main
    sys.exit(main())
