"""
Orçamentos — repair-quote generator for a computer-repair shop

Packages:
    api/        Flask routes (quotes, saved templates, PDF download)
    forms/      Quote record, form validation, layout, PDF rendering and export
    core/       Paths, settings, storage, security middleware
"""
