"""Outlier accuracy pipeline.

Estimates how reliably an RNA-seq expression outlier call holds up at the
sequencing depth a sample actually reached.
"""

__version__ = "0.1.0"
