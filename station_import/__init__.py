"""Station spreadsheet importer.

Reconciles a hand-authored station spreadsheet into the `stations` table:
deactivate every station, then upsert the rows of the sheet keyed by station_no.
"""

__version__ = "0.1.0"
