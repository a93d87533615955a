"""Хранилище cookies."""
