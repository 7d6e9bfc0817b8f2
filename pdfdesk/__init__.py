"""
PDF Desk
========
Browser and command-line front-end for everyday PDF chores.

Tools:
    - Merge:         Combine two PDFs into one document
    - Split:         Extract a page range into a new document
    - Compress:      Re-serialize a PDF with object cleanup and deflate
    - PDF to Image:  Rasterize selected pages to PNG
    - Image to PDF:  Build a PDF with one page per image

All document work is delegated to PyMuPDF.

Version: 1.0.0
"""

__version__ = "1.0.0"
