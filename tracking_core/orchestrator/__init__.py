"""Оркестрационный слой: сессия браузера, челлендж, повторы."""
