"""
Member Ingestion Module

Reads uploaded suspended-member CSV exports.
"""

from .csv_reader import MalformedCSVError, parse_member_csv

__all__ = [
    "MalformedCSVError",
    "parse_member_csv",
]
