"""
datapeek - remote data source previews

A standalone sampling service that pulls the first few records out of a
remote GeoJSON, delimited text, DBF or zipped source without downloading
it in full, so a submitter can check a source before it is registered
for bulk ingestion.
"""

__version__ = "0.1.0"
