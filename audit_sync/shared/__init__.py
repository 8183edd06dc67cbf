"""
Utilidades y excepciones compartidas.
"""
