"""
Versioned hierarchy records: a metadata envelope plus appended JSON data rows.
"""
