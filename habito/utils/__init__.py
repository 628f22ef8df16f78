# habito/utils/__init__.py
