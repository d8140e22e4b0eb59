"""
Astral Services Layer

Crisis detection, offline resilience and capability adaptation.
Services receive their collaborators explicitly; none are module globals.
"""
