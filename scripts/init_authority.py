#!/usr/bin/env python3
"""Create the root authority named by PKICA_AUTHORITY (or argv[1]) and print it."""
import os
import sys

# Ensure project root is on sys.path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cryptography.hazmat.primitives import serialization

from pkica.authority import AuthorityManager
from pkica.config import load_settings
from pkica.store import FileCertificateStore

settings = load_settings()
name = sys.argv[1] if len(sys.argv) > 1 else settings.authority
if not name:
    raise SystemExit("usage: init_authority.py <authority name> (or set PKICA_AUTHORITY)")

manager = AuthorityManager.from_settings(settings, FileCertificateStore.from_settings(settings), name)
root = manager.get_or_create_authority()

print(f"[+] Root authority {root.subject.rfc4514_string()} ({root.location.value} store)")
sys.stdout.write(root.certificate.public_bytes(serialization.Encoding.PEM).decode("ascii"))
