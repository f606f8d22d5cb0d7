"""TodoHub Reports — spreadsheet export and preview."""
