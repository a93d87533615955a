"""Конфигурация трекера."""
