"""
htmlpdf - HTML to PDF rendering through a supervised wkhtmltopdf process

Renders HTML documents (inline content, local files or URLs) to PDF by driving
the wkhtmltopdf command-line renderer as a subprocess.

Architecture:
- Staging Context: Temporary HTML assets handed to the renderer by path
- Rendering Context: Argument composition, process supervision, outcome classification
"""

__version__ = "0.1.0"
