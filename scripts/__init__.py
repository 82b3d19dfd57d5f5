"""
Package marker for scripts to allow running as a module:

    python3 -m scripts.run_coupled --mode slabplanet --days 30

This avoids import issues for 'pyesm'.
"""
