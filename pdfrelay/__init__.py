"""PDF engines over pdfcpu, PDFtk and QPDF with fallback, form handlers, webhook delivery and metrics."""

__version__ = "0.1.0"