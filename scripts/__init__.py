"""
Utility Scripts.

- run_pipeline.py: Run the pipeline once for an ad-hoc channel

Run scripts with: python scripts/run_pipeline.py --help
"""
