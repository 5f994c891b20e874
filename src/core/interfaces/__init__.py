"""Interfaces/abstracciones del Core.

Por qué:
- Define el contrato (Protocol) del proveedor de texto generativo.
- El Core y el façade dependen de la abstracción; los tests usan un fake.
"""
