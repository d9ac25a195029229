"""Reusable task factories for Ease.install().

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""
