"""
Device-side plumbing for the Roku service.

  config.py       — JSON config loader (``cfg()``)
  remote_base.py  — DeviceRemote interface, CommandKey, result/value types
  ecp.py          — EcpRemote: Roku External Control Protocol over HTTP/XML
  discovery.py    — SSDP search and targeted ECP probes
"""
