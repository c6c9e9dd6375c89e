"""
schemas package: domain records (dataclasses) and boundary models (pydantic).
"""
