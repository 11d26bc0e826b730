# logvault/auth/__init__.py
