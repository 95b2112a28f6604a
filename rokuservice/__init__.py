"""
Roku Service — HTTP front-end for Roku streaming devices.

  server.py    — process entry point and aiohttp app wiring
  registry.py  — known devices, persisted to rokus.json
  api.py       — JSON API under /api/rokus
  admin.py     — HTML admin pages (/ and /add)
  results.py   — handler results and their HTTP mapping
  lib/         — config, device remotes (ECP) and discovery (SSDP)
"""

__version__ = "0.1.0"
