"""
Sovereign Bond Ranker

Modules:
- normalization: winsorized percentile scaling of yields
- calibration: market-wide FX penalty scale (lambdaBase)
- fx: per-currency OU risk profiles, haircuts, cross rates
- credit: spread -> quality -> logistic trust cliff, wrong-way correlation
- issuers: keyword trust rules + unknown issuer capture
- spreads: country normalization, multi-source spread merge and lookup
- ratings: sovereign rating per country and rating comparisons
- providers: spread and FX reference-rate sources
- engine: per-profile scoring of a bond universe
- scenarios: spread / FX volatility stress grids
- pipeline, cli: batch run wiring
"""
