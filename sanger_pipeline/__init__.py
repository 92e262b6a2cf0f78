"""
sanger_pipeline

Sanger trace editing-outcome pipeline: runs Synthego ICE (single or batch),
sorts the batch output into per-sample folders and renders Quarto reports.
"""

__version__ = "1.0.0"
