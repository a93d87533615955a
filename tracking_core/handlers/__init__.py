"""Источники данных отслеживания."""
