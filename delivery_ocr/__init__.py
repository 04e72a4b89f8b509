"""Delivery Note OCR.

Turns photographed delivery notes and invoices into structured records
by trying a chain of OCR/IDP providers and running heuristic field
extraction over the first usable text.
"""
