"""Quote data and PDF generation.

Key exports:
    QuoteRecord / ServiceItem   — immutable quote data
    validate_quote_form()       — payload validation (Portuguese messages)
    compute_layout()            — section geometry, no drawing
    render_document()           — paints a layout on a reportlab canvas
    export_quote_pdf()          — logo + layout + render + atomic file write
"""
